import sys
import logging
from typing import List, Optional

from .config import load_config
from .runner import Runner


def setup_logging(debug: bool):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None):
    try:
        config = load_config(argv)
        setup_logging(config.debug)

        runner = Runner(config)
        report = runner.execute()
        print(report["summary"]["bundle_name"])

    except Exception as e:
        print(f"FATAL ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
