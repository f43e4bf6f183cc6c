import argparse
import logging
import os
import signal
import sys
import threading

from vcluster_hostpath_mapper.cluster import (
    ClusterView,
    load_host_api_client,
    virtual_api_client,
    wait_for_virtual_cluster,
)
from vcluster_hostpath_mapper.config import NODE_NAME_ENV, config_from_args
from vcluster_hostpath_mapper.errors import MapperError, StartupError
from vcluster_hostpath_mapper.mode import resolve_mode
from vcluster_hostpath_mapper.reconciler import Reconciler
from vcluster_hostpath_mapper.restart import restart_target_pods

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vcluster-hostpath-mapper",
        description="Map host pod log and kubelet paths into virtual cluster paths",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    start = subparsers.add_parser("start", help="Map host to virtual pod logs")

    start.add_argument(
        "--client-ca-cert",
        default="/data/server/tls/client-certificate",
        help="The path to the client ca certificate",
    )
    start.add_argument(
        "--server-ca-cert",
        default="/data/server/tls/certificate-authority",
        help="The path to the server ca certificate",
    )
    start.add_argument(
        "--server-ca-key",
        default="/data/server/tls/client-key",
        help="The path to the server ca key",
    )
    start.add_argument(
        "--target-namespace",
        default="",
        help="The namespace to run the virtual cluster in (defaults to current namespace)",
    )
    start.add_argument(
        "--name", default="vcluster", help="The name of the virtual cluster"
    )
    start.add_argument(
        "--init", action="store_true", help="If this is the init container"
    )

    return parser


def install_signal_handlers(stop: threading.Event) -> None:
    def _handle(signum, frame):
        logger.info(f"received signal {signum}, shutting down")
        stop.set()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def start(args, stop: threading.Event) -> None:
    config = config_from_args(args)
    if not config.node_name:
        logger.warning(f"{NODE_NAME_ENV} is not set, node filtering will not match")

    virtual_client = virtual_api_client(config)
    try:
        wait_for_virtual_cluster(virtual_client, stop)
    except StartupError as e:
        if stop.is_set():
            logger.info(f"stopped: {e}")
            return
        raise

    host = ClusterView(load_host_api_client(), name="host")
    virtual = ClusterView(virtual_client, name="virtual")

    config = resolve_mode(host, config)

    if args.init:
        logger.info("is init container mode")
        restart_target_pods(host, config)
        return

    reconciler = Reconciler(config, host, virtual)
    reconciler.prepare()
    reconciler.run(stop)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    stop = threading.Event()
    install_signal_handlers(stop)

    try:
        start(args, stop)
    except MapperError as e:
        logger.error(f"hostpath mapper failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
