import matplotlib

matplotlib.use('Agg')

import numpy as np
import pytest


@pytest.fixture
def line_points():
    """实数轴上的六个点：两个聚类和一个噪声点"""
    return [0.0, 1.0, 2.0, 10.0, 11.0, 20.0]


@pytest.fixture
def blobs():
    """三个相距很远的高斯簇加上少量离群点"""
    rng = np.random.default_rng(42)
    centers = np.array([[0.0, 0.0], [20.0, 0.0], [0.0, 20.0]])
    clusters = [center + rng.normal(scale=0.5, size=(40, 2)) for center in centers]
    outliers = np.array([[10.0, 10.0], [-15.0, -15.0], [30.0, 30.0]])
    return np.vstack(clusters + [outliers])
