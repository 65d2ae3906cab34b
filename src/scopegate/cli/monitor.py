"""Monitor process: keep the published scope snapshot in sync with ConfigMaps.

Usage
-----
Runs forever with no arguments; every setting can also come from the
environment (see :class:`scopegate.config.MonitorConfig`)::

    scopegate-monitor
    scopegate-monitor --namespace policy --interval 30
    scopegate-monitor --once -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from scopegate._kubeconfig import load_credentials
from scopegate._transport import KubeConfigMapStore
from scopegate.aggregator import Aggregator
from scopegate.config import MonitorConfig, default_kubeconfig_path
from scopegate.exceptions import ScopeGateConfigError
from scopegate.snapshot_store import SnapshotStore

_logger = logging.getLogger("scopegate.monitor")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scopegate-monitor",
        description="Aggregate scoped-config ConfigMaps into a shared scope snapshot.",
    )
    parser.add_argument("--kubeconfig", help="Local kubeconfig (default: $KUBECONFIG or ~/.kube/config)")
    parser.add_argument("--namespace", help="Namespace to watch")
    parser.add_argument("--prefix", help="ConfigMap name prefix")
    parser.add_argument("--interval", type=float, help="Seconds between cycles")
    parser.add_argument("--output-dir", help="Directory to publish the snapshot into")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    return parser


async def run(config: MonitorConfig, *, once: bool = False) -> None:
    credentials = load_credentials(config.kubeconfig or default_kubeconfig_path())
    async with KubeConfigMapStore(credentials, config.namespace, timeout=config.store_timeout) as store:
        aggregator = Aggregator(
            store,
            SnapshotStore(config.output_dir, config.file_name),
            prefix=config.prefix,
            interval=config.interval,
        )
        _logger.info(
            "Watching ConfigMaps %s* in namespace %s every %ss",
            config.prefix,
            config.namespace,
            config.interval,
        )
        await aggregator.run_forever(max_cycles=1 if once else None)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = MonitorConfig.from_env(
            kubeconfig=args.kubeconfig,
            namespace=args.namespace,
            prefix=args.prefix,
            interval=args.interval,
            output_dir=args.output_dir,
        )
        asyncio.run(run(config, once=args.once))
    except ScopeGateConfigError as exc:
        _logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        _logger.info("Interrupted, exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())
