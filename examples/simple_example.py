"""
Demo script for StitchClient.

Upserts a handful of people into the ``people`` table, first one at a time
with a synchronous push, then through the batching queue.

Usage:
    python examples/simple_example.py CLIENT_ID TOKEN NAMESPACE
"""

import sys
import time

from loguru import logger

from stitch_client import (
    Action,
    LoggingResponseHandler,
    StitchClient,
    StitchError,
    StitchMessage,
    StitchRejected,
)

PEOPLE = [
    (1, "Jerry Garcia"),
    (2, "Omar Rodgriguez Lopez"),
    (3, "Nina Simone"),
    (4, "Joni Mitchell"),
    (5, "David Bowie"),
]


def make_message(person_id: int, name: str) -> StitchMessage:
    return StitchMessage(
        action=Action.UPSERT,
        sequence=int(time.time() * 1000),
        data={"id": person_id, "name": name},
    )


def main(client_id: int, token: str, namespace: str) -> int:
    with StitchClient(
        client_id=client_id,
        token=token,
        namespace=namespace,
        table_name="people",
        key_names=["id"],
        max_batch_records=100,
        default_handler=LoggingResponseHandler(),
    ) as stitch:
        for person_id, name in PEOPLE[:2]:
            try:
                response = stitch.push(make_message(person_id, name))
                logger.info(f"Pushed {name}: {response.status}")
            except StitchRejected as e:
                logger.error(f"Got error response from Stitch: {e} {e.content}")
                return 1
            except StitchError as e:
                logger.error(str(e))
                return 1

        for person_id, name in PEOPLE[2:]:
            stitch.put(make_message(person_id, name))
        logger.info("Queued the rest; flushing on close")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print("Usage: CLIENT_ID TOKEN NAMESPACE", file=sys.stderr)
        sys.exit(2)
    sys.exit(main(int(sys.argv[1]), sys.argv[2], sys.argv[3]))
