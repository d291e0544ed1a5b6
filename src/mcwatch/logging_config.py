import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO"):
    levelno = getattr(logging, str(level).upper(), logging.INFO)
    # diagnostics go to stderr so notices on stdout stay clean
    logging.basicConfig(level=levelno, format=LOG_FORMAT)
    logging.getLogger("scapy.runtime").setLevel(max(levelno, logging.WARNING))
