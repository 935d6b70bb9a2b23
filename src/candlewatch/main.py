# src/candlewatch/main.py
import os
import asyncio
import structlog
from dotenv import load_dotenv

from candlewatch.config import AppConfig, config_from_env
from candlewatch.utils.log import setup_logging

from candlewatch.ingest.binance_rest import BinanceREST, BinanceRESTConfig
from candlewatch.ingest.source import FailoverSource, LiveFeed, SyntheticFallback
from candlewatch.ingest.poller import FeedFilter, FeedPoller, PollerConfig

from candlewatch.alerts.evaluator import AlertService, ThresholdEvaluator
from candlewatch.alerts.rules import AlertPolicy
from candlewatch.alerts.notifiers import ConsoleNotifier
from candlewatch.alerts.formatting import format_alert_pretty, format_candle_line, format_day_line

from candlewatch.data.export import export_filename, ohlcv_filename, write_csv, write_ohlcv_csv

load_dotenv()
log = structlog.get_logger()


# ---------------------------
# History and candle consumers
# ---------------------------

async def days_printer(q_days: asyncio.Queue, cfg: AppConfig):
    """
    Consume ("days", (symbol, year, month), buckets) from the poller.
    Prints one line per day and, with EXPORT_DIR set, rewrites the month CSV.
    """
    while True:
        kind, key, buckets = await q_days.get()
        if kind != "days":
            continue
        symbol, year, month = key
        print(f"--- {symbol} {year}-{month:02d} ({len(buckets)} days) ---", flush=True)
        for b in buckets:
            print(format_day_line(b), flush=True)

        if cfg.export_dir:
            path = os.path.join(cfg.export_dir, export_filename(symbol, year, month))
            try:
                os.makedirs(cfg.export_dir, exist_ok=True)
                write_csv(path, buckets, cfg.sessions)
                log.info("history_exported", path=path, rows=len(buckets))
            except OSError as e:
                log.warning("history_export_failed", path=path, err=str(e))


async def candles_printer(q_candles: asyncio.Queue, cfg: AppConfig):
    """
    Consume ("candles", (symbol, interval), candles) from the poller.
    Prints the newest-first table and, with EXPORT_DIR set, rewrites the OHLCV CSV.
    """
    while True:
        kind, key, candles = await q_candles.get()
        if kind != "candles":
            continue
        symbol, interval = key
        print(f"--- {symbol} {interval} ({len(candles)} candles) ---", flush=True)
        for c in candles:
            print(format_candle_line(c, cfg.reference_tz), flush=True)

        if cfg.export_dir:
            path = os.path.join(cfg.export_dir, ohlcv_filename(symbol, interval))
            try:
                os.makedirs(cfg.export_dir, exist_ok=True)
                write_ohlcv_csv(path, candles, cfg.reference_tz)
                log.info("candles_exported", path=path, rows=len(candles))
            except OSError as e:
                log.warning("candles_export_failed", path=path, err=str(e))


async def prices_to_alerts(q_prices: asyncio.Queue, service: AlertService):
    """Forward ("price", symbol, price, ts) from the poller into the alert inbox."""
    while True:
        kind, symbol, price, ts = await q_prices.get()
        if kind == "price":
            service.submit_price(symbol, price, ts)


# ---------------------------
# Main
# ---------------------------

async def main():
    cfg = config_from_env()
    setup_logging(cfg.log_level, cfg.log_format)
    log.info("candlewatch_starting", symbol=cfg.symbol, market=cfg.market, timeframe=cfg.timeframe)

    # Queues
    q_prices = asyncio.Queue(maxsize=1_000)
    q_days   = asyncio.Queue(maxsize=16)
    q_candles = asyncio.Queue(maxsize=16)
    q_alerts_in  = asyncio.Queue(maxsize=2_000)
    q_alerts_out = asyncio.Queue(maxsize=2_000)

    # Data sources: live provider with synthetic fallback behind a breaker
    client = BinanceREST(BinanceRESTConfig(market=cfg.market, timeout_s=cfg.http_timeout_s))
    live = LiveFeed(client)
    source = FailoverSource(
        live,
        SyntheticFallback(),
        failure_threshold=cfg.failure_threshold,
        reopen_initial_s=cfg.reopen_initial_s,
        reopen_cap_s=cfg.reopen_cap_s,
    )
    await live.start()

    poller = FeedPoller(
        source,
        FeedFilter(
            symbol=cfg.symbol,
            interval=cfg.timeframe,
            start_ms=cfg.candles_start_ms,
            end_ms=cfg.candles_end_ms,
        ),
        PollerConfig(
            ticker_poll_s=cfg.ticker_poll_s,
            candles_poll_s=cfg.candles_poll_s,
            history_poll_s=cfg.history_poll_s,
            history_interval=cfg.history_interval,
            sessions=cfg.sessions,
            tz=cfg.reference_tz,
        ),
        q_prices=q_prices,
        q_days=q_days,
        q_candles=q_candles,
    )

    # ----- Alerts -----
    evaluator = ThresholdEvaluator(
        cfg.symbol,
        AlertPolicy(cooldown_seconds=cfg.alert_cooldown_s, noise_floor=cfg.alert_noise_floor),
    )
    for direction, price in cfg.alerts:
        evaluator.add_rule(price, direction)
    alert_service = AlertService(evaluator, q_alerts_in, q_alerts_out)
    await alert_service.start()

    console_notifier = ConsoleNotifier(format_fn=lambda e: format_alert_pretty(e, cfg.alert_tz))

    # ----- Run everything -----
    tasks = [
        poller.start(),
        prices_to_alerts(q_prices, alert_service),
        console_notifier.run(q_alerts_out),
        days_printer(q_days, cfg),
        candles_printer(q_candles, cfg),
    ]

    try:
        await asyncio.gather(*tasks)
    finally:
        # graceful shutdown to avoid unclosed sessions
        for obj in (poller, alert_service, live):
            try:
                await obj.stop()
            except Exception as e:
                log.warning("shutdown_step_failed", component=type(obj).__name__, err=str(e))


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
