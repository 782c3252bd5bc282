"""In-memory entity store.

Every collection is a dict keyed by a generated UUID4 string. Records live for
the lifetime of the process; nothing is persisted. Each collection carries its
own lock so individual operations stay atomic when handlers run in a thread
pool instead of on the event loop.
"""
import hashlib
import logging
import secrets
import threading
import uuid
from typing import Dict, Generic, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from .models import (
    Candidate, CandidateCreate, DatasetEntry, DatasetEntryCreate, DatasetQuery,
    Material, MaterialCreate, Prediction, PredictionCreate, User, UserCreate, utcnow,
)
from .reference_data import DATASET_SEED

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

# query field -> DatasetEntry attribute
_SORT_ATTRIBUTES = {
    "name": "name",
    "formula": "formula",
    "energyDensity": "energy_density",
    "voltageWindow": "voltage_window",
    "ionicConductivity": "ionic_conductivity",
}

PBKDF2_ITERATIONS = 200_000


class DuplicateUsernameError(ValueError):
    pass


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    _, _, salt, _ = stored.split("$")
    return secrets.compare_digest(hash_password(password, salt), stored)


class Collection(Generic[RecordT]):
    def __init__(self, name: str, record_type: Type[RecordT], timestamped: bool = True):
        self.name = name
        self.record_type = record_type
        self.timestamped = timestamped
        self._records: Dict[str, RecordT] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __len__(self) -> int:
        return len(self._records)

    def create(self, payload) -> RecordT:
        data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)
        data["id"] = str(uuid.uuid4())
        if self.timestamped:
            data["created_at"] = utcnow()
        record = self.record_type(**data)
        with self._lock:
            self._records[record.id] = record
        return record

    def create_many(self, payloads: Iterable) -> List[RecordT]:
        with self._lock:
            return [self.create(p) for p in payloads]

    def get(self, record_id: str) -> Optional[RecordT]:
        with self._lock:
            return self._records.get(record_id)

    def list(self) -> List[RecordT]:
        with self._lock:
            return list(self._records.values())

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None


class MemStorage:
    def __init__(self, seed: bool = True):
        self.users: Collection[User] = Collection("users", User, timestamped=False)
        self.materials: Collection[Material] = Collection("materials", Material)
        self.predictions: Collection[Prediction] = Collection("predictions", Prediction)
        self.candidates: Collection[Candidate] = Collection("candidates", Candidate)
        self.dataset_entries: Collection[DatasetEntry] = Collection(
            "dataset_entries", DatasetEntry, timestamped=False
        )
        if seed:
            self.seed_dataset()

    def collection(self, name: str) -> Collection:
        coll = getattr(self, name, None)
        if not isinstance(coll, Collection):
            raise KeyError(f"Unknown collection: {name}")
        return coll

    # Generic access by collection name

    def create(self, collection: str, payload):
        return self.collection(collection).create(payload)

    def create_many(self, collection: str, payloads: Iterable) -> list:
        return self.collection(collection).create_many(payloads)

    def get(self, collection: str, record_id: str):
        return self.collection(collection).get(record_id)

    def list(self, collection: str) -> list:
        return self.collection(collection).list()

    def delete(self, collection: str, record_id: str) -> bool:
        return self.collection(collection).delete(record_id)

    def seed_dataset(self) -> int:
        entries = self.dataset_entries.create_many(DatasetEntryCreate(**row) for row in DATASET_SEED)
        logger.info(f"Seeded {len(entries)} dataset entries")
        return len(entries)

    # Users

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.list() if u.username == username), None)

    def create_user(self, data: UserCreate) -> User:
        # the scan and insert must not interleave with another registration
        with self.users.lock:
            if self.get_user_by_username(data.username) is not None:
                raise DuplicateUsernameError(f"Username already taken: {data.username}")
            return self.users.create({
                "username": data.username,
                "password_hash": hash_password(data.password),
            })

    # Materials

    def get_material(self, material_id: str) -> Optional[Material]:
        return self.materials.get(material_id)

    def get_materials(self) -> List[Material]:
        return self.materials.list()

    def create_material(self, data: MaterialCreate) -> Material:
        return self.materials.create(data)

    def delete_material(self, material_id: str) -> bool:
        return self.materials.delete(material_id)

    # Predictions

    def get_prediction(self, prediction_id: str) -> Optional[Prediction]:
        return self.predictions.get(prediction_id)

    def get_predictions_by_material(self, material_id: str) -> List[Prediction]:
        return [p for p in self.predictions.list() if p.material_id == material_id]

    def create_prediction(self, data: PredictionCreate) -> Prediction:
        return self.predictions.create(data)

    # Candidates

    def get_candidates(self) -> List[Candidate]:
        return self.candidates.list()

    def create_candidate(self, data: CandidateCreate) -> Candidate:
        return self.candidates.create(data)

    def create_candidates(self, data: Iterable[CandidateCreate]) -> List[Candidate]:
        return self.candidates.create_many(data)

    # Dataset

    def get_dataset_entries(self, query: Optional[DatasetQuery] = None) -> Tuple[List[DatasetEntry], int]:
        query = query or DatasetQuery()
        entries = self.dataset_entries.list()

        if query.category:
            entries = [e for e in entries if e.category == query.category]

        if query.search:
            needle = query.search.lower()
            entries = [e for e in entries if needle in e.name.lower() or needle in e.formula.lower()]

        if query.min_energy_density is not None:
            entries = [e for e in entries
                       if e.energy_density is not None and e.energy_density >= query.min_energy_density]
        if query.max_energy_density is not None:
            entries = [e for e in entries
                       if e.energy_density is not None and e.energy_density <= query.max_energy_density]

        if query.sort_by:
            attr = _SORT_ATTRIBUTES[query.sort_by]
            textual = attr in ("name", "formula")

            def sort_key(entry):
                value = getattr(entry, attr)
                if textual:
                    return (value or "").lower()
                return value or 0

            entries = sorted(entries, key=sort_key, reverse=query.sort_order == "desc")

        total = len(entries)
        start = (query.page - 1) * query.limit
        return entries[start:start + query.limit], total

    def get_dataset_entry(self, entry_id: str) -> Optional[DatasetEntry]:
        return self.dataset_entries.get(entry_id)

    def create_dataset_entry(self, data: DatasetEntryCreate) -> DatasetEntry:
        return self.dataset_entries.create(data)
