import logging
import sys

from pykairos import Executor, later, task
from pykairos.dns import resolve

logging.basicConfig(level=logging.INFO)


@task
def heartbeat(reactor, interval, beats):
    for beat in range(beats):
        yield later(interval)
        print(f"heartbeat {beat + 1}/{beats}")
    return beats


def main():
    names = sys.argv[1:] or ["example.com"]

    executor = Executor()
    lookup = executor.with_task(lambda r: resolve(r, names))
    executor.with_task(lambda r: heartbeat(r, 0.1, 3))

    executor.run()
    executor.reactor.close()

    if lookup.outcome.is_success():
        for record in lookup.result():
            print(record)
    else:
        print(f"Lookup failed: {lookup.outcome.value}")


if __name__ == "__main__":
    main()
