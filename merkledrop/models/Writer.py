import json, csv
from pathlib import Path
from dataclasses import dataclass
from typing import Any

from merkledrop.models.Config import Config
from merkledrop.models.Claim import Distribution

CLAIMS_FIELDNAMES = ["index", "account", "amount", "proof"]


@dataclass
class Writer:
    config: Config

    @property
    def path(self) -> str:
        return self.config.snapshot_dir

    @staticmethod
    def write_csv(data: list[dict[str, Any]], path: str, fieldnames: list[str]) -> None:
        with open(path, "w+", newline="") as f:
            writer = csv.writer(f, delimiter=",")
            writer.writerow(fieldnames)

            for row in data:
                flattened_row = []
                for key in fieldnames:
                    v = row.get(key)
                    # lists and dicts don't fit in a cell, keep them as json
                    if isinstance(v, (list, dict)):
                        v = json.dumps(v)
                    flattened_row.append(v)
                writer.writerow(flattened_row)

    # create the directory for this snapshot if it doesn't exist
    def _create_dir(self) -> None:
        Path(self.path).mkdir(parents=True, exist_ok=True)

    # write to a csv file
    def to_csv(self, data, name: str, fieldnames: list[str]) -> None:
        self._create_dir()
        self.write_csv(data, f"{self.path}/{name}.csv", fieldnames)

    # write to a json file
    def to_json(self, data, name: str) -> None:
        self._create_dir()
        with open(f"{self.path}/{name}.json", "w") as f:
            json.dump(data, f, indent=4)

    def write_distribution(self, distribution: Distribution) -> None:
        claims = sorted(distribution.claims.values(), key=lambda c: c.index)
        self.to_json(distribution.model_dump(mode="json"), "distribution")
        self.to_csv([c.model_dump() for c in claims], "claims", CLAIMS_FIELDNAMES)
