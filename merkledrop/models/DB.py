import os
from typing import Optional

from filelock import FileLock
from tinydb import TinyDB
from tinydb.table import Document, Table

from merkledrop.models.Claim import Claim, Distribution
from merkledrop.errors import DuplicateDistributionError


class DB(TinyDB):
    """
    Append-only store of finished distributions, keyed by an incrementing id.
    There is deliberately no update or delete: a distribution is immutable once written.
    """

    TABLE = "distributions"

    def __init__(self, path: str, **kwargs):
        self.path = path

        # check if the directory exists
        create_dirs = self.exists(path) == False
        super().__init__(
            path,
            indent=4,
            create_dirs=create_dirs,
            **kwargs,
        )
        # shared by every process writing to the same file
        self.lock = FileLock(f"{path}.lock")

    @staticmethod
    def exists(path: str):
        return os.path.exists(path)

    @property
    def distributions(self) -> Table:
        return self.table(self.TABLE)

    def next_distribution_id(self) -> int:
        return max((d.doc_id for d in self.distributions.all()), default=0) + 1

    def write_distribution(self, distribution: Distribution) -> Distribution:
        """
        Assigns the next id and inserts the record while holding the file lock, so two runs
        can never both read the same max id. The stored record is read back before
        returning and any mismatch is raised rather than reported as success.
        """
        if distribution.id is not None:
            raise DuplicateDistributionError(
                f"Distribution already persisted with id {distribution.id}"
            )

        with self.lock:
            distribution_id = self.next_distribution_id()
            persisted = distribution.model_copy(update={"id": distribution_id})
            record = persisted.model_dump(mode="json")

            try:
                self.distributions.insert(Document(record, doc_id=distribution_id))
            except ValueError as e:
                raise DuplicateDistributionError(
                    f"Distribution {distribution_id} was written by another run"
                ) from e

            stored = self.distributions.get(doc_id=distribution_id)
            if stored is None or dict(stored) != record:
                raise DuplicateDistributionError(
                    f"Distribution {distribution_id} was overwritten by another run"
                )
        return persisted

    def get_distribution(self, distribution_id: int) -> Optional[Distribution]:
        doc = self.distributions.get(doc_id=distribution_id)
        if doc is None:
            return None
        return Distribution.model_validate(dict(doc))

    def latest_distribution(self) -> Optional[Distribution]:
        docs = self.distributions.all()
        if not docs:
            return None
        latest = max(docs, key=lambda d: d.doc_id)
        return Distribution.model_validate(dict(latest))

    def find_claim(self, account: str) -> Optional[tuple[int, Claim]]:
        """Claim for `account` in the latest distribution, alongside that distribution's id"""
        latest = self.latest_distribution()
        if latest is None or latest.id is None:
            return None
        claim = latest.claim_for(account)
        if claim is None:
            return None
        return latest.id, claim
