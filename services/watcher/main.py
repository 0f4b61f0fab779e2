import signal
import sys

from loguru import logger

from burn_watch.chains.solana_watcher import BurnWatcher
from burn_watch.config import AppSettings
from burn_watch.errors import ConfigurationError


def main() -> int:
    settings = AppSettings()
    logger.remove()
    # stdout is reserved for burn records
    logger.add(lambda msg: print(msg, end="", file=sys.stderr), level=settings.log_level)

    logger.info("RPC: {}", settings.sol_rpc_url)
    logger.info("Tracked mint: {}", settings.mint_address)
    try:
        watcher = BurnWatcher.create(settings)
    except ConfigurationError as e:
        logger.error("Configuration error: {}", e)
        return 2

    def _handle_sig(signum, frame):
        logger.info("Received {}; stopping after the current step", signal.Signals(signum).name)
        watcher.stop()

    signal.signal(signal.SIGINT, _handle_sig)
    signal.signal(signal.SIGTERM, _handle_sig)

    watcher.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
