"""Appointment persistence backends."""

import json
import os
import tempfile
from pathlib import Path
from typing import List, Protocol, Sequence
from models.appointment import Appointment
from utils.logger import setup_logger

logger = setup_logger(__name__)


class AppointmentStore(Protocol):
    """Persistence boundary used by the scheduler."""

    def load_all(self) -> List[Appointment]:
        ...

    def save_all(self, appointments: Sequence[Appointment]) -> None:
        ...


class InMemoryAppointmentStore:
    """Store that keeps serialized snapshots in memory."""

    def __init__(self, appointments: Sequence[Appointment] = ()):
        self._records = [apt.to_dict() for apt in appointments]
        self.save_count = 0

    def load_all(self) -> List[Appointment]:
        return [Appointment.from_dict(record) for record in self._records]

    def save_all(self, appointments: Sequence[Appointment]) -> None:
        self._records = [apt.to_dict() for apt in appointments]
        self.save_count += 1


class JsonFileAppointmentStore:
    """Store that writes all appointments to a single JSON file."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load_all(self) -> List[Appointment]:
        """
        Load appointments from disk.

        Returns:
            Appointments, or an empty list when the file does not exist yet
        """
        if not self.path.exists():
            logger.info(f"No appointment file at {self.path}, starting empty")
            return []

        with self.path.open('r', encoding='utf-8') as f:
            records = json.load(f)

        appointments = [Appointment.from_dict(record) for record in records]
        logger.info(f"Loaded {len(appointments)} appointments from {self.path}")
        return appointments

    def save_all(self, appointments: Sequence[Appointment]) -> None:
        """
        Write appointments to disk atomically.

        Args:
            appointments: Full appointment collection
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        records = [apt.to_dict() for apt in appointments]

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.debug(f"Saved {len(records)} appointments to {self.path}")
