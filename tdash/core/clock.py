from tdash.common.logger import log
from tdash.core.engine import ReconciliationEngine


# Local prediction: once per tick, every running timer moves one second through the engine. Holds no timer data of
# its own, the engine stays the only truth.
class LocalClock:

    def __init__(self, engine: ReconciliationEngine, on_changed=None, on_expired=None):
        self.engine = engine
        self.on_changed = on_changed
        self.on_expired = on_expired
        self.ticks = 0

    # Advances every running timer once. Returns the ids that changed.
    def tick(self):
        self.ticks += 1
        changed = []
        expired = []
        for timer_id in self.engine.running_ids():
            result = self.engine.advance(timer_id)
            if not result.changed:
                continue
            changed.append(timer_id)
            if result.expired:
                expired.append(timer_id)

        # Repaint first, then expiry side effects, so the overlay lands on an up to date card.
        if self.on_changed is not None:
            for timer_id in changed:
                self.on_changed(timer_id)
        if self.on_expired is not None:
            for timer_id in expired:
                self.on_expired(timer_id)

        if expired:
            log.debug(f"Tick {self.ticks}: {len(changed)} advanced, expired {expired}")
        return changed
