import logging

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from participant.exceptions import JournalError
from participant.journal import Journal
from participant.node import ParticipantNode
from participant.transport import DatagramTransport
from rentals.datastore import ReservationStore

logger = logging.getLogger("rentals")


class Command(BaseCommand):
    help = "Recover journalled transactions, then serve the 2PC participant endpoint"

    def add_arguments(self, parser):
        config = settings.PARTICIPANT
        parser.add_argument("--host", default=config["HOST"])
        parser.add_argument("--port", type=int, default=config["PORT"])
        parser.add_argument("--journal-dir", default=config["JOURNAL_DIR"])

    def handle(self, *args, **options):
        config = settings.PARTICIPANT
        logger.info("Starting up %s", config["NAME"])

        try:
            journal = Journal(options["journal_dir"])
        except JournalError as e:
            raise CommandError(str(e))

        try:
            transport = DatagramTransport(options["host"], options["port"])
        except OSError as e:
            raise CommandError(f"Cannot bind {options['host']}:{options['port']}: {e}")
        logger.info("Socket initialized on %s:%s", options["host"], options["port"])

        node = ParticipantNode(
            config["NAME"], transport, journal, ReservationStore(recycle_connections=True),
            escalation_interval=config["ESCALATION_INTERVAL"],
            gc_delay=config["GC_DELAY"],
            relay_peers=config["RELAY_PEERS"],
        )
        try:
            node.start()
        except KeyboardInterrupt:
            logger.info("Interrupted")
