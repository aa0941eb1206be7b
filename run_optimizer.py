#!/usr/bin/env python3
"""
Meteora DLMM position optimizer.

Keeps one liquidity position centered on the active price of an asset pair:
when the price leaves the position's bin range, liquidity is withdrawn, the
wallet is rebalanced to a 50/50 value split and a new position is opened.

Usage:
    python run_optimizer.py --config conf/optimizer.yml
    OPTIMIZER_ASSET_A=SOL OPTIMIZER_ASSET_B=USDC OPTIMIZER_POSITION_RANGE_PER_SIDE=0.05 python run_optimizer.py
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from config import OptimizerSettings, load_settings
from controllers.dlmm_lp_domain.errors import ConfigurationError, InsufficientNativeBalanceError
from controllers.dlmm_lp_domain.position_controller import PositionController
from services.alerts import LogAlertSink
from services.balance_logger import BalanceLogger, LocalFileStorage
from services.gateway_client import GatewayClient
from services.optimization_loop import OptimizationLoop

logger = logging.getLogger("run_optimizer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Meteora DLMM concentrated-liquidity position optimizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", help="YAML settings file (overrides env and .env values)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level",
    )
    return parser


def install_signal_handlers(optimization_loop: OptimizationLoop):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, optimization_loop.stop)
        except NotImplementedError:
            logger.warning("signal_handler_unavailable | signal=%s", sig.name)


async def log_starting_balances(settings: OptimizerSettings, gateway: GatewayClient, balance_logger: BalanceLogger):
    pair = settings.asset_pair()
    raw_a = await gateway.get_balance(None if pair.is_native(pair.asset_a) else pair.asset_a)
    raw_b = await gateway.get_balance(None if pair.is_native(pair.asset_b) else pair.asset_b)
    balance_logger.log_balances(raw_a, raw_b, "Starting balances")


async def run(settings: OptimizerSettings):
    pair = settings.asset_pair()
    gateway = GatewayClient.from_settings(settings)
    alert_sink = LogAlertSink(str(pair))
    balance_logger = BalanceLogger(pair, LocalFileStorage(settings.balance_log.path))
    controller = PositionController.from_settings(
        settings,
        wallet=gateway,
        protocol=gateway,
        swap_service=gateway,
        alert_sink=alert_sink,
        action_logger=balance_logger,
    )
    optimization_loop = OptimizationLoop(
        controller,
        poll_interval_sec=settings.poll_interval_sec,
        startup_delay_sec=settings.startup_delay_sec,
        report_interval_sec=settings.report_interval_sec,
        alert_sink=alert_sink,
    )
    install_signal_handlers(optimization_loop)

    try:
        await log_starting_balances(settings, gateway, balance_logger)
        created = await controller.load_initial_state()
        logger.info(
            "initial_state_loaded | pair=%s created=%s pool=%s",
            pair,
            created,
            controller.working_pool.address if controller.working_pool else None,
        )
        await optimization_loop.run()
    finally:
        await gateway.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        asyncio.run(run(settings))
    except InsufficientNativeBalanceError as e:
        logger.error(
            "%s. Top up the wallet's %s balance and restart the optimizer.",
            e,
            settings.gateway.native_symbol,
        )
        return 1
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
