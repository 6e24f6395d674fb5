from pathlib import Path

import numpy as np
import pytest

from recallbench.dataset import write_fvecs, write_ivecs


@pytest.fixture
def make_dataset(tmp_path: Path):
    def _make(base, queries, groundtruth, name: str = "toy") -> tuple[Path, Path, Path]:
        root = tmp_path / name
        base_path = write_fvecs(root / "base.fvecs", np.asarray(base, dtype=np.float32))
        query_path = write_fvecs(root / "query.fvecs", np.asarray(queries, dtype=np.float32))
        gt_path = write_ivecs(root / "groundtruth.ivecs", np.asarray(groundtruth, dtype=np.int32))
        return base_path, query_path, gt_path

    return _make
