import os
import numbers
import time

from blackboard.core import log
from blackboard.core.board import BlackBoard
from blackboard.core.metrics import start_exporter, stop_exporter
from blackboard.core.subscriber import CollectingSubscriber, Subscriber


class Printer(Subscriber[str]):
    def receive(self, value: str) -> None:
        log.get("demo.printer").info("got %s", value)


def main():
    log.setup()
    start_exporter(interval_sec=float(os.getenv("METRICS_INTERVAL", "5")),
                   json_mode=(os.getenv("LOG_JSON", "0") == "1"))

    with BlackBoard() as board:
        numbers_seen = CollectingSubscriber()
        board.subscribe(Printer())
        board.subscribe(numbers_seen, numbers.Number)

        for i in range(10):
            board.publish(f"tick {i}")
            board.async_publish(i * 1.5)
            time.sleep(0.2)

        numbers_seen.wait_for(10, timeout=2.0)
        log.get("demo").info("numbers=%s", numbers_seen.items)

    stop_exporter()


if __name__ == "__main__":
    main()
