"""
This is a minimal entry point script for the background worker host process.

Its sole responsibility is to set the process title, wire termination
signals to the host's stop event and run the supervision loop. Site names
may be passed as arguments; by default every site under SITES_DIR is managed.
"""
import setproctitle
setproctitle.setproctitle("WebFarm - Worker Host")

import sys
import signal
import logging
from webfarm.log.setup import setup_logging
from webfarm.local.supervisor import BackgroundWorkerService
from webfarm.local.supervisor.host import WorkerHost

log = logging.getLogger(__name__)

# Global reference for signal handler
host = None


def handle_shutdown_signal(signum, frame):
    """Handle shutdown signals gracefully."""
    log.debug(f"Signal {signum} received, stopping worker host.")
    if host:
        host.stop_event.set()

if __name__ == "__main__":
    setup_logging()
    host = WorkerHost(BackgroundWorkerService(), sites=sys.argv[1:])

    signal.signal(signal.SIGTERM, handle_shutdown_signal)
    signal.signal(signal.SIGINT, handle_shutdown_signal)

    host.run()
