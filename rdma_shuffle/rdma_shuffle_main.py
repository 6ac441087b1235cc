# ----------------------------------------------------------------------------
# OVERALL STRUCTURE
# ----------------------------------------------------------------------------

# rdma_shuffle/
# ├── rdma_shuffle_main.py   # main(), run()
# ├── config/
# │   ├── version_support.py # init_version_support(), VersionInfo
# │   ├── conf_store.py      # ConfStore
# │   ├── byte_units.py      # byte_string_as_bytes(), format_bytes()
# │   └── shuffle_conf.py    # RdmaShuffleConf, PARAMETERS
# └── utils/
#     └── utility.py         # RdmaShuffleLogger

# ----------------------------------------------------------------------------
# IMPORTS
# ----------------------------------------------------------------------------

import os
import sys
import pytz
import hydra
import datetime
from omegaconf import DictConfig, OmegaConf
# rdma_shuffle packages
from rdma_shuffle.utils.utility import RdmaShuffleLogger
from rdma_shuffle.config import ConfStore, RdmaShuffleConf, PARAMETERS, VersionError
from rdma_shuffle.config import init_version_support, host_version, format_bytes
from rdma_shuffle.config.shuffle_conf import Kind


def make_log_dir():
    if "RDMA_SHUFFLE_LOG_DIR" in os.environ:
        return os.environ["RDMA_SHUFFLE_LOG_DIR"]
    chicago_tz = pytz.timezone('America/Chicago')
    timestamp = datetime.datetime.now(chicago_tz).strftime("%Y%m%d_%H%M%S_%f")
    return f"logs/run_{timestamp}"


def run(cfg: DictConfig, log) -> int:

    # ----------------------------------------------------------------------------
    # VERSION GATE
    # ----------------------------------------------------------------------------

    try:
        info = init_version_support(host_version(cfg))
    except VersionError as e:
        log.error(f"[VERSION] {e}")
        log.error("[EXIT] Host framework version is not supported")
        return 1
    log.info(f"[VERSION] Spark {info.major_version}.{info.minor_version} ({info.version})")

    # ----------------------------------------------------------------------------
    # RESOLVE CATALOGUE
    # ----------------------------------------------------------------------------

    conf = RdmaShuffleConf(ConfStore(cfg))

    publish_port = OmegaConf.select(cfg, "rdma_shuffle.publish_driver_port", default=None)
    if publish_port is not None:
        conf.set_driver_port(publish_port)
        log.info(f"[CONFIG] Published driver port {publish_port}")

    log.info("-------------------------------------------------------------------------")
    log.info("[CONFIG] Resolved RDMA shuffle configuration")
    for name, value in conf.describe().items():
        spec = PARAMETERS[name]
        if spec.kind is Kind.BYTES:
            shown = f"{value} ({format_bytes(value)})"
        elif value is None:
            shown = "<unset>"
        else:
            shown = value
        log.output(f"[CONFIG] {spec.key:<50}= {shown}")

    fallbacks = conf.fallbacks()
    if fallbacks:
        log.info(f"[CONFIG] {len(fallbacks)} value(s) out of range, defaults used")
    log.info("-------------------------------------------------------------------------")
    log.info("[EXIT] All Done.")
    return 0


# ----------------------------------------------------------------------------
# MAIN FUNCTION
# ----------------------------------------------------------------------------


@hydra.main(config_path=None, config_name="config", version_base=None)
def main(cfg: DictConfig):
    log_dir = make_log_dir()
    log = RdmaShuffleLogger.get_instance(log_file="rdma_shuffle.log", log_dir=log_dir)
    try:
        status = run(cfg, log)
    finally:
        RdmaShuffleLogger.flush()
        RdmaShuffleLogger.reset()
    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
