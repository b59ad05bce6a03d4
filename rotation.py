"""
Slideshow rotation state machine.

The same machine the viewer page runs from static/rotation.js: an
auto-advance timer, manual next/previous, a random-mode toggle and
reconciliation of pushed image lists. Timers are APScheduler date jobs and
display side effects go through a display object providing fade_out() and
show(filename).
"""

import json
import random
import uuid
from datetime import datetime, timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from config import FADE_DURATION_MS, INITIAL_RANDOM, ROTATION_INTERVAL_MS
from logger_config import get_logger

logger = get_logger('rotation')

NO_PRIOR_IMAGE = -1


class RotationState:
    def __init__(self, random_mode=INITIAL_RANDOM):
        self.current_index = 0
        self.last_shown_index = NO_PRIOR_IMAGE
        self.random_mode = random_mode
        self.pending_timer = None

    def to_dict(self):
        return {
            'current_index': self.current_index,
            'last_shown_index': self.last_shown_index,
            'random_mode': self.random_mode,
            'timer_pending': self.pending_timer is not None
        }


def next_index(state, count, rng=random):
    """
    Pick the index of the next image to show.

    Random mode draws uniformly and rejects the last shown index, so a list
    of more than one image never repeats back to back. A single image is
    always index 0.
    """
    if count <= 0:
        raise ValueError("Cannot pick an image from an empty list")
    if count == 1:
        return 0
    if state.random_mode:
        while True:
            candidate = rng.randrange(count)
            if candidate != state.last_shown_index:
                return candidate
    return (state.current_index + 1) % count


class SlideshowController:
    def __init__(self, images, display, scheduler=None, random_mode=INITIAL_RANDOM,
                 interval_ms=ROTATION_INTERVAL_MS, fade_ms=FADE_DURATION_MS, rng=None):
        self.images = list(images)
        self.display = display
        self._owns_scheduler = scheduler is None
        if self._owns_scheduler:
            scheduler = BackgroundScheduler()
            scheduler.start()
        self.scheduler = scheduler
        self.state = RotationState(random_mode)
        self.interval = timedelta(milliseconds=interval_ms)
        self.fade = timedelta(milliseconds=fade_ms)
        self.rng = rng if rng is not None else random.Random()
        self.job_id = f'slideshow-advance-{uuid.uuid4().hex}'
        self._fade_jobs = set()

    def start(self):
        if self.images:
            self._schedule_advance()

    def stop(self):
        """Cancel the rotation timer and any fade still in flight"""
        self._suspend()
        for fade_id in list(self._fade_jobs):
            self._remove_job(fade_id)
        self._fade_jobs.clear()
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def advance(self):
        """Show the next image and restart the rotation timer"""
        count = len(self.images)
        if count == 0:
            self._suspend()
            return None

        new_index = next_index(self.state, count, self.rng)
        self.state.last_shown_index = new_index
        if not self.state.random_mode:
            self.state.current_index = new_index

        self._transition(self.images[new_index])
        self._schedule_advance()
        return new_index

    def next(self):
        return self.advance()

    def previous(self):
        count = len(self.images)
        if count == 0:
            return None
        # Two back then one forward lands on the image before the current one
        self.state.current_index = (self.state.current_index - 2 + count) % count
        return self.advance()

    def toggle_random(self):
        self.state.random_mode = not self.state.random_mode
        logger.debug(f"Random mode is now {'ON' if self.state.random_mode else 'OFF'}")
        if self.images:
            self._schedule_advance()
        return self.state.random_mode

    def reconcile(self, images):
        """
        Adopt a pushed image list.

        Returns False and changes nothing when the list is unchanged.
        Otherwise the list is replaced in place and the sequential position
        restarts at 0; the last shown index and the mode are kept.
        """
        images = list(images)
        if images == self.images:
            return False

        was_empty = not self.images
        self.images[:] = images
        self.state.current_index = 0
        logger.debug(f"Image list updated: {len(images)} images")

        if not images:
            self._suspend()
        elif was_empty:
            self._schedule_advance()
        return True

    def reconcile_payload(self, payload):
        """Adopt a serialized image list; malformed payloads keep the current list"""
        try:
            images = json.loads(payload)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed image list update")
            return False
        if not isinstance(images, list) or not all(isinstance(name, str) for name in images):
            logger.warning("Ignoring malformed image list update")
            return False
        return self.reconcile(images)

    def _transition(self, filename):
        self.display.fade_out()
        fade_id = f'{self.job_id}-fade-{uuid.uuid4().hex}'
        self._fade_jobs.add(fade_id)
        self.scheduler.add_job(
            self._finish_transition,
            'date',
            run_date=datetime.now() + self.fade,
            args=[fade_id, filename],
            id=fade_id
        )

    def _finish_transition(self, fade_id, filename):
        self._fade_jobs.discard(fade_id)
        self.display.show(filename)

    def _schedule_advance(self):
        self.state.pending_timer = self.scheduler.add_job(
            self.advance,
            'date',
            run_date=datetime.now() + self.interval,
            id=self.job_id,
            replace_existing=True
        )

    def _suspend(self):
        if self.state.pending_timer is None:
            return
        self._remove_job(self.job_id)
        self.state.pending_timer = None

    def _remove_job(self, job_id):
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            # Already fired
            pass
