import math

import numpy as np
import pygame
import pytest

from duality_engine import (
    Simulation, Pointer, Particle, PARTICLE, WAVE, SHAPES, WRAP_MARGIN,
    alpha_for_distance, influence_for_distance, shape_points, triangle_warp,
)
from noise_field import NoiseField


def in_bounds(p, sim):
    return (-WRAP_MARGIN <= p.pos[0] <= sim.width + WRAP_MARGIN
            and -WRAP_MARGIN <= p.pos[1] <= sim.height + WRAP_MARGIN)


def test_spawn_inside_canvas(sim):
    for p in sim.particles:
        assert 0 <= p.pos[0] <= sim.width
        assert 0 <= p.pos[1] <= sim.height
        assert p.prev == p.pos
        assert math.hypot(*p.vel) == pytest.approx(0.2)
        assert 0.7 * 3.0 <= p.size <= 1.6 * 3.0


@pytest.mark.parametrize("mode", [WAVE, PARTICLE])
def test_wrap_keeps_particles_in_extended_bounds(sim, mode):
    sim.mode = mode
    rng = np.random.default_rng(0)
    for p in sim.particles:
        p.vel = list(rng.uniform(-400, 400, size=2))
    drag = Pointer(sim.width / 2, sim.height / 2, pressed=True)
    for frame in range(120):
        sim.update(drag if frame % 2 else Pointer(-9999, -9999))
        assert all(in_bounds(p, sim) for p in sim.particles)


def test_wrap_teleports_to_opposite_edge(sim):
    p = sim.particles[0]
    p.pos = [-WRAP_MARGIN - 1, sim.height + WRAP_MARGIN + 3]
    p.wrap(sim.width, sim.height)
    assert p.pos == [sim.width + WRAP_MARGIN, -WRAP_MARGIN]

    p.pos = [sim.width + WRAP_MARGIN + 0.5, -WRAP_MARGIN - 0.5]
    p.wrap(sim.width, sim.height)
    assert p.pos == [-WRAP_MARGIN, sim.height + WRAP_MARGIN]

    # inside the margin nothing moves
    p.pos = [-WRAP_MARGIN, sim.height + 10]
    assert not p.wrap(sim.width, sim.height)
    assert p.pos == [-WRAP_MARGIN, sim.height + 10]


def test_trail_stays_short_across_wrap(sim, far_pointer):
    p = sim.particles[0]
    p.pos = [sim.width + WRAP_MARGIN - 0.5, 300.0]
    p.prev = list(p.pos)
    p.vel = [5.0, 0.0]
    p.update(sim, far_pointer)
    assert p.pos[0] == -WRAP_MARGIN
    assert p.prev[0] == -WRAP_MARGIN
    assert p.prev[1] == 300.0
    for x, y in p.trail_points(sim.t):
        assert math.hypot(x - p.pos[0], y - p.pos[1]) < 10

    layer = pygame.Surface((sim.width, sim.height), pygame.SRCALPHA)
    p.render(layer, sim, far_pointer)
    assert layer.get_bounding_rect().width < 20


def test_alpha_monotonic_and_bounded():
    width = 800
    ds = np.linspace(0, 3 * width, 400)
    alphas = [alpha_for_distance(d, width) for d in ds]
    assert alphas[0] == pytest.approx(1.0)
    assert alpha_for_distance(0.7 * width, width) == pytest.approx(0.12)
    assert all(0.06 <= a <= 1.0 for a in alphas)
    assert all(b <= a for a, b in zip(alphas, alphas[1:]))
    assert alphas[-1] == pytest.approx(0.06)


def test_influence_clamped():
    assert influence_for_distance(0, 800) == 1.0
    assert influence_for_distance(0.35 * 800, 800) == pytest.approx(0.5)
    assert influence_for_distance(5000, 800) == 0.0


def test_wave_step_moves_velocity_by_bounded_blend(far_pointer):
    sim = Simulation(800, 600, n=1, seed=7)
    p = sim.particles[0]
    p.pos = [0.0, 0.0]
    p.vel = [0.0, 0.0]
    sim.step(far_pointer)
    bound = 0.05 * (sim.preset.speed * 0.6 + 0.4)
    assert math.hypot(*p.vel) <= bound + 1e-9
    assert math.hypot(*p.vel) > 0
    assert p.prev == [0.0, 0.0]
    assert p.pos == pytest.approx(p.vel)


def test_particle_mode_step_bounded(far_pointer):
    sim = Simulation(800, 600, n=1, seed=7)
    sim.mode = PARTICLE
    p = sim.particles[0]
    p.vel = [0.0, 0.0]
    sim.step(far_pointer)
    assert math.hypot(*p.vel) <= 0.06 * (sim.preset.speed * 1.4 + 0.5) + 1e-9


def test_drag_adds_pull_toward_pointer():
    sim = Simulation(800, 600, n=1, seed=3)
    p = sim.particles[0]
    p.pos = [100.0, 100.0]
    p.vel = [0.0, 0.0]
    p.update(sim, Pointer(200, 100, pressed=True), angle=0.0)
    influence = 1.0 - 100 / (0.7 * 800)
    assert p.vel[0] == pytest.approx(0.8 * influence)
    assert p.vel[1] == pytest.approx(0.0)


def test_drag_keeps_accumulating_without_damping():
    sim = Simulation(800, 600, n=1, seed=3)
    p = sim.particles[0]
    pointer = Pointer(400, 300, pressed=True)
    p.pos = [300.0, 300.0]
    p.vel = [0.0, 0.0]
    p.update(sim, pointer, angle=0.0)
    first = p.vel[0]
    p.pos = [300.0, 300.0]
    p.update(sim, pointer, angle=0.0)
    assert p.vel[0] == pytest.approx(2 * first)


def test_drag_at_pointer_adds_nothing():
    sim = Simulation(800, 600, n=1, seed=3)
    p = sim.particles[0]
    p.pos = [250.0, 250.0]
    p.vel = [0.3, -0.1]
    p.update(sim, Pointer(250, 250, pressed=True), angle=1.0)
    assert p.vel == pytest.approx([0.3, -0.1])


def test_phase_and_life_advance_without_despawn(far_pointer):
    sim = Simulation(800, 600, n=3, seed=2)
    p = sim.particles[0]
    p.life = 0.005
    phase = p.phase
    sim.step(far_pointer)
    assert p.phase == pytest.approx(phase + 0.01 * sim.preset.speed)
    assert p.life == pytest.approx(-0.005)
    for _ in range(10):
        sim.step(far_pointer)
    assert len(sim.particles) == 3
    assert p in sim.particles


def test_update_computes_angle_when_not_given(sim, far_pointer):
    p = sim.particles[0]
    expected = p.flow_angle(sim)
    assert 0 <= expected <= 4 * math.pi
    twin = Particle(sim)
    twin.pos, twin.prev, twin.vel = list(p.pos), list(p.prev), list(p.vel)
    twin.phase, twin.seed = p.phase, p.seed
    p.update(sim, far_pointer)
    twin.update(sim, far_pointer, angle=expected)
    assert p.vel == pytest.approx(twin.vel)


def test_shape_vertex_counts_and_layout(sim):
    assert len(shape_points('square', 10, 0.0, 0.0)) == 4
    warp = triangle_warp(sim.noise, 12.5)
    tri = shape_points('triangle', 10, 0.0, 12.5, warp)
    assert len(tri) == 3
    # first vertex sits straight "up" (-90 degrees)
    assert tri[0][0] == pytest.approx(0.0, abs=1e-9)
    assert tri[0][1] < 0
    star = shape_points('star', 10, 0.0, 0.0)
    radii = [math.hypot(x, y) for x, y in star]
    assert len(star) == 10
    assert all(r > 10 for r in radii[0::2])
    assert all(r < 6 for r in radii[1::2])
    assert shape_points('circle', 10, 0.0, 0.0) == []


def test_square_distortion_within_twelve_percent():
    for t in np.linspace(0, 10, 25):
        for x, y in shape_points('square', 10, t, 3.0):
            assert 8.8 - 1e-9 <= math.hypot(x, y) <= 11.2 + 1e-9


@pytest.mark.parametrize("noise_seed", [0, 5, 99])
def test_triangle_distortion_within_twenty_five_percent(noise_seed):
    noise = NoiseField(seed=noise_seed)
    for seed in np.linspace(0, 1000, 15):
        pts = shape_points('triangle', 10, 0.0, seed, triangle_warp(noise, seed))
        assert len(pts) == 3
        for x, y in pts:
            assert 10 - 1e-9 <= math.hypot(x, y) <= 12.5 + 1e-9


def test_star_radii_within_twelve_percent():
    for seed in (0.0, 3.0, 417.5):
        for t in np.linspace(0, 10, 25):
            pts = shape_points('star', 10, t, seed)
            for k, (x, y) in enumerate(pts):
                r = 11.5 if k % 2 == 0 else 4.5
                assert r * 0.88 - 1e-9 <= math.hypot(x, y) <= r * 1.12 + 1e-9


def _painted(surface):
    return surface.get_bounding_rect().width > 0


def test_render_wave_trail(sim):
    layer = pygame.Surface((sim.width, sim.height), pygame.SRCALPHA)
    p = sim.particles[0]
    p.prev = [400.0, 300.0]
    p.pos = [404.0, 303.0]
    p.render(layer, sim, Pointer(404, 303))
    assert _painted(layer)


@pytest.mark.parametrize("shape_index", range(len(SHAPES)))
def test_render_each_shape(sim, shape_index):
    sim.mode = PARTICLE
    sim.shape_index = shape_index
    layer = pygame.Surface((sim.width, sim.height), pygame.SRCALPHA)
    p = sim.particles[0]
    p.pos = [400.0, 300.0]
    p.size = 6.0
    p.render(layer, sim, Pointer(400, 300))
    assert _painted(layer)
    assert layer.get_at((400, 300)).a > 0


def test_triangle_warp_cached_per_noise_seed(sim):
    p = sim.particles[0]
    first = p.triangle_warp(sim.noise)
    assert p.triangle_warp(sim.noise) is first
    sim.noise.reseed(sim.noise.seed + 1)
    assert p.triangle_warp(sim.noise) is not first
