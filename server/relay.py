# server/relay.py
# The broadcast relay: every frame received from one peer is forwarded, exactly as received,
# to every other peer that is connected at that moment.
#
# Per inbound frame:
# 1. Classify the frame (framing.decode). Malformed or non-MIDI text frames are dropped here.
# 2. Snapshot the registry, excluding the sender, and keep the targets that are still open.
# 3. Queue the original frame on each target's outbox. This never waits, so the sender's
#    connection handler moves on to its next frame immediately and a stalled target can't hold
#    up the rest. Each target's writer sends its queue in order, which keeps a sender's frames
#    in order at every target.
# 4. In a background task, join all the per-target deliveries, log failures and hand them to
#    the lifecycle manager, which decides whether to drop the target.

import asyncio      # For joining deliveries and running the collection task.
import dataclasses  # For the fan-out report.
import logging      # For dropped messages, send failures and debug traces.

import config       # For the DEBUG flag.
from errors import MalformedEnvelope, SendFailure, UnexpectedMessageKind
from framing import decode


@dataclasses.dataclass
class FanOutReport:
    """Outcome of forwarding one inbound frame."""
    sender: object
    message: object
    delivered: list = dataclasses.field(default_factory=list)
    failures: list = dataclasses.field(default_factory=list)

    @property
    def targets(self):
        return len(self.delivered) + len(self.failures)


class BroadcastRelay:

    def __init__(self, registry, lifecycle):
        self._registry = registry
        self._lifecycle = lifecycle
        # Running collection tasks; referenced here so they aren't garbage collected mid-flight.
        self._fan_outs = set()

    def classify(self, sender, raw):
        """
        Decodes an inbound frame for validation and logging.

        Returns:
            EventMessage | None: The decoded message, or None if the frame must be dropped.
        """
        try:
            message = decode(raw)
        except MalformedEnvelope as e:
            logging.warning(f"Dropping malformed message from peer {sender.identity} ({sender.remote_address}): {e}")
            return None
        except UnexpectedMessageKind as e:
            logging.warning(f"Dropping non-MIDI message from peer {sender.identity} ({sender.remote_address}): {e}")
            return None
        if config.DEBUG:
            logging.info(f"Message received from peer {sender.identity}: {message.describe()}")
        return message

    def dispatch(self, sender, raw):
        """
        Forwards one inbound frame to every other open peer without waiting for delivery.

        All target outboxes are filled before this returns.

        Args:
            sender (Peer): The peer the frame came from. It never receives its own frame.
            raw (str | bytes): The frame exactly as received.

        Returns:
            asyncio.Task | None: Task resolving to a FanOutReport once every target's delivery has
            finished, or None if the frame was dropped.
        """
        message = self.classify(sender, raw)
        if message is None:
            return None

        deliveries = {}
        for target in self._registry.snapshot_excluding(sender):
            # A target that started closing after the snapshot is skipped, not sent to.
            if target.is_open:
                deliveries[target] = target.enqueue(message.raw)

        task = asyncio.create_task(self._collect(sender, message, deliveries))
        self._fan_outs.add(task)
        task.add_done_callback(self._fan_outs.discard)
        return task

    async def broadcast(self, sender, raw):
        """
        Forwards one inbound frame and waits for the outcome.

        Returns:
            FanOutReport | None: Per-target results, or None if the frame was dropped.
        """
        task = self.dispatch(sender, raw)
        if task is None:
            return None
        return await task

    async def _collect(self, sender, message, deliveries):
        report = FanOutReport(sender=sender, message=message)
        results = await asyncio.gather(*deliveries.values(), return_exceptions=True)
        for target, result in zip(deliveries, results):
            if isinstance(result, BaseException):
                failure = SendFailure(target, result)
                report.failures.append(failure)
                logging.warning(f"Error forwarding message ({message.encoding.value}) from peer {sender.identity} to peer {target.identity}: {result}")
                self._lifecycle.report_send_failure(failure)
            else:
                report.delivered.append(target)
                self._lifecycle.record_delivery(target)

        if config.DEBUG:
            logging.info(f"Relayed message from peer {sender.identity} to {len(report.delivered)}/{report.targets} peers")
        return report
