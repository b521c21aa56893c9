import numpy as np
import pytest

from tests._helpers import make_pose


@pytest.fixture
def sample_pose():
    return make_pose()


@pytest.fixture
def blank_frame():
    return np.zeros((240, 320, 3), dtype=np.uint8)
