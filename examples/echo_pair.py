import logging
import socket

from pykairos import Executor, again, join, later, task

logging.basicConfig(level=logging.CRITICAL)


@task
def receive(reactor, sock):
    with reactor.registered(sock) as token:
        while True:
            yield again(token, 1.0)
            try:
                return sock.recv(1024)
            except BlockingIOError:
                continue


@task
def send_later(reactor, sock, delay, payload):
    yield later(delay)
    sock.send(payload)
    return len(payload)


@task
def exchange(reactor):
    left, right = socket.socketpair()
    left.setblocking(False)
    right.setblocking(False)
    try:
        received, sent = yield from join(
            receive(reactor, left),
            send_later(reactor, right, 0.2, b"ping"),
        )
    finally:
        right.close()
    print(f"sent {sent} bytes, received {received!r}")
    return received


def main():
    executor = Executor()
    handle = executor.with_task(exchange)
    executor.run()
    executor.reactor.close()
    print(f"Exchange complete: {handle.result()!r}")


if __name__ == "__main__":
    main()
