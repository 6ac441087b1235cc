import logging
import os
import sys
import threading


LOG_TAG = "RDMA_SHUFFLE"
LOGGER_NAME = "rdma_shuffle"
OUTPUT = logging.INFO + 5

logging.addLevelName(OUTPUT, "OUTPUT")


class RdmaShuffleLogger:
    """Process-wide logger for the RDMA shuffle tooling.

    Every line carries the [RDMA_SHUFFLE] tag so it can be split out of the
    host framework's interleaved output. Modules log through
    logging.getLogger(__name__); the handlers installed here sit on the
    `rdma_shuffle` package logger and therefore see all of them.
    """

    __instance = None
    __lock = threading.Lock()

    def __init__(self, log_file=None, log_dir=None, level=logging.INFO):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.log_path = None

        formatter = logging.Formatter(f"[{LOG_TAG}] %(asctime)s %(levelname)s %(message)s")

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        self.logger.addHandler(console)

        if log_file:
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
                self.log_path = os.path.join(log_dir, log_file)
            else:
                self.log_path = log_file
            file_handler = logging.FileHandler(self.log_path, mode="a")
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def get_instance(cls, log_file=None, log_dir=None, level=logging.INFO):
        with cls.__lock:
            if cls.__instance is None:
                cls.__instance = cls(log_file=log_file, log_dir=log_dir, level=level)
            return cls.__instance

    @classmethod
    def flush(cls):
        if cls.__instance is None:
            return
        for handler in cls.__instance.logger.handlers:
            handler.flush()

    @classmethod
    def reset(cls):
        with cls.__lock:
            if cls.__instance is None:
                return
            logger = cls.__instance.logger
            for handler in list(logger.handlers):
                handler.flush()
                handler.close()
                logger.removeHandler(handler)
            logger.propagate = True
            cls.__instance = None

    def debug(self, msg):
        self.logger.debug(msg)

    def info(self, msg):
        self.logger.info(msg)

    def warning(self, msg):
        self.logger.warning(msg)

    warn = warning

    def error(self, msg):
        self.logger.error(msg)

    def output(self, msg):
        self.logger.log(OUTPUT, msg)
