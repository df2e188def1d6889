"""Run the token maintenance worker as a standalone process."""

import logging
import time

from authcore.services.token_maintenance import token_maintenance_worker


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    token_maintenance_worker.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        token_maintenance_worker.stop()


if __name__ == "__main__":
    main()
