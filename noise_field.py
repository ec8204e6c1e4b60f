"""
noise_field.py — coherent 3D noise for the flow field

NoiseField.sample(x, y, t) returns smooth values in [0, 1] built from a few
octaves of gradient (Perlin) noise. Scalars give a float back, numpy arrays are
broadcast and give an array back, so the whole particle cloud or the whole grid
can be sampled in one call.
"""
import numpy as np

OCTAVES = 4
FALLOFF = 0.5


class NoiseField:
    def __init__(self, seed=0, octaves=OCTAVES, falloff=FALLOFF):
        self.octaves = octaves
        self.falloff = falloff
        self.reseed(seed)

    def reseed(self, seed):
        """Rebuild the permutation table; values already sampled are untouched."""
        self.seed = int(seed) % (2 ** 32)
        rng = np.random.default_rng(self.seed)
        perm = np.arange(256, dtype=np.int64)
        rng.shuffle(perm)
        self.permutation = np.tile(perm, 2)

    @staticmethod
    def fade(t):
        return t * t * t * (t * (t * 6 - 15) + 10)

    @staticmethod
    def gradient(h, x, y, z):
        # 12 edge directions of the cube, picked by the low 4 bits of the hash
        h = h & 15
        u = np.where(h < 8, x, y)
        v = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
        return np.where((h & 1) == 0, u, -u) + np.where((h & 2) == 0, v, -v)

    def _perlin(self, x, y, z):
        x0, y0, z0 = np.floor(x), np.floor(y), np.floor(z)
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255
        zi = z0.astype(np.int64) & 255
        xf, yf, zf = x - x0, y - y0, z - z0
        u, v, w = self.fade(xf), self.fade(yf), self.fade(zf)

        p = self.permutation
        a = p[xi] + yi
        aa = p[a] + zi
        ab = p[a + 1] + zi
        b = p[xi + 1] + yi
        ba = p[b] + zi
        bb = p[b + 1] + zi

        g = self.gradient
        x1 = g(p[aa], xf, yf, zf) + u * (g(p[ba], xf - 1, yf, zf) - g(p[aa], xf, yf, zf))
        x2 = g(p[ab], xf, yf - 1, zf) + u * (g(p[bb], xf - 1, yf - 1, zf) - g(p[ab], xf, yf - 1, zf))
        y1 = x1 + v * (x2 - x1)
        x3 = g(p[aa + 1], xf, yf, zf - 1) + u * (g(p[ba + 1], xf - 1, yf, zf - 1) - g(p[aa + 1], xf, yf, zf - 1))
        x4 = g(p[ab + 1], xf, yf - 1, zf - 1) + u * (g(p[bb + 1], xf - 1, yf - 1, zf - 1) - g(p[ab + 1], xf, yf - 1, zf - 1))
        y2 = x3 + v * (x4 - x3)
        return y1 + w * (y2 - y1)

    def sample(self, x, y=0.0, t=0.0):
        x, y, t = np.broadcast_arrays(
            np.asarray(x, dtype=np.float64),
            np.asarray(y, dtype=np.float64),
            np.asarray(t, dtype=np.float64),
        )
        total = np.zeros(x.shape, dtype=np.float64)
        amp, freq, norm = 1.0, 1.0, 0.0
        for _ in range(self.octaves):
            total += amp * self._perlin(x * freq, y * freq, t * freq)
            norm += amp
            amp *= self.falloff
            freq *= 2.0
        out = np.clip(0.5 + 0.5 * total / norm, 0.0, 1.0)
        if out.ndim == 0:
            return float(out)
        return out
