import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame
import pytest

from duality_engine import Simulation, Pointer


@pytest.fixture
def sim():
    return Simulation(800, 600, n=40, seed=1234)


@pytest.fixture
def far_pointer():
    return Pointer(100000, 100000, pressed=False)


@pytest.fixture
def fonts():
    pygame.font.init()
    yield
    pygame.font.quit()
