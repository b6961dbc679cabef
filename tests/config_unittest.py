"""
Tests for saving and loading parameters and OTF's
"""
import unittest
import json
import tempfile
from pathlib import Path
import numpy as np
from simrecon.config import save_config, load_config, param_to_dict, param_from_dict, otf_to_dict, otf_from_dict
from simrecon.otf import OtfProvider, OtfProvider3D
from simrecon.sim_param import SimParam, ImgSeq, WienerPlan
from simrecon.errors import ConfigurationError


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.save_dir = Path(self.tmp_dir.name)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def _get_param(self):
        otf = OtfProvider.from_estimate(1.4, 525., 0.3)
        param = SimParam.create(3, 3, 5, 256, 0.08, otf)
        param.img_seq = ImgSeq.PZA
        param.filter_plan = WienerPlan(0.08)
        param.apo_cutoff = 1.8
        param.apo_bend = 1.2

        for d in range(3):
            direction = param.dir(d)
            direction.set_px_py(30. + d, -20. + 2 * d)
            direction.set_pha_off(0.1 * d)
            direction.set_modulation(1, 0.9)
            direction.set_modulation(2, 0.6 - 0.1 * d)
        param.dir(1).set_phases([0., 1.3, 2.5, 3.8, 5.1], False)

        return param

    def test_param_round_trip(self):
        """
        save and load all direction parameters, including individual phases
        """
        param = self._get_param()
        fname = save_config(self.save_dir / "param.json", param)
        param_load, otf_load, otf3d_load = load_config(fname)

        self.assertIsNone(otf3d_load)
        self.assertIs(param_load.otf, otf_load)
        self.assertEqual(param_load.img_seq, ImgSeq.PZA)
        self.assertEqual(param_load.img_size, 256)
        np.testing.assert_allclose(param_load.microns_per_pixel, 0.08)
        np.testing.assert_allclose(param_load.wiener_parameter, 0.08)
        np.testing.assert_allclose(param_load.apo_cutoff, 1.8)
        np.testing.assert_allclose(param_load.apo_bend, 1.2)

        for d in range(3):
            dl = param_load.dir(d)
            do = param.dir(d)
            np.testing.assert_allclose(dl.get_px_py(2), do.get_px_py(2))
            np.testing.assert_allclose(dl.get_px_py(1), do.get_px_py(1))
            np.testing.assert_allclose(dl.pha_off, do.pha_off)
            np.testing.assert_allclose(dl.modulations, do.modulations)
            np.testing.assert_allclose(dl.get_phases(), do.get_phases())
            self.assertEqual(dl.has_individual_phases, do.has_individual_phases)

        # OTF pixel size was set from the loaded parameters
        np.testing.assert_allclose(otf_load.vec_cycles_per_micron, param_load.cycles_per_micron)

    def test_file_layout(self):
        param = self._get_param()
        fname = save_config(self.save_dir / "param.json", param)

        with open(fname, "r") as f:
            cfg = json.load(f)

        self.assertEqual(set(cfg.keys()), {"sim-param", "otf2d"})
        self.assertEqual(cfg["sim-param"]["img-seq"], "PZA")
        np.testing.assert_allclose(cfg["sim-param"]["dir-0"]["shift"], [30., -20.])
        self.assertNotIn("phases", cfg["sim-param"]["dir-0"])
        self.assertIn("phases", cfg["sim-param"]["dir-1"])
        np.testing.assert_allclose(cfg["otf2d"]["a-estimate"], 0.3)
        self.assertEqual(cfg["otf2d"]["emission"], 525)

    def test_otf_estimate_with_attenuation(self):
        otf = OtfProvider.from_estimate(1.2, 600., 0.5)
        otf.set_attenuation(0.95, 1.5)

        otf_load = otf_from_dict(otf_to_dict(otf))
        self.assertTrue(otf_load.is_estimate)
        self.assertTrue(otf_load.is_attenuate)
        np.testing.assert_allclose(otf_load.att_strength, 0.95)
        np.testing.assert_allclose(otf_load.att_fwhm, 1.5)
        np.testing.assert_allclose(otf_load.vals, otf.vals)

    def test_otf_data(self):
        """
        measured multi-band OTF samples survive the interleaved complex storage
        """
        rng = np.random.default_rng(seed=7)
        samples = rng.random((3, 50)) + 1j * rng.random((3, 50))
        otf = OtfProvider.from_data(3, samples, 0.08, 1.3, 520.)

        fname = save_config(self.save_dir / "otf.json", otf=otf)
        param_load, otf_load, _ = load_config(fname)

        self.assertIsNone(param_load)
        self.assertFalse(otf_load.is_estimate)
        self.assertEqual(otf_load.nbands, 3)
        np.testing.assert_allclose(otf_load.vals, samples)
        np.testing.assert_allclose(otf_load.cycles_per_micron, 0.08)

        # wrong number of samples
        fld = otf_to_dict(otf)
        fld["data"]["samples"] = 49
        with self.assertRaises(ConfigurationError):
            otf_from_dict(fld)

    def test_otf3d(self):
        rng = np.random.default_rng(seed=8)
        vals = rng.random((2, 6, 9)) + 1j * rng.random((2, 6, 9))
        otf3d = OtfProvider3D(vals, 0.1, 0.2, 1.2, 520., 1.33, name="bead", meta="measured")

        fname = save_config(self.save_dir / "otf3d.json", otf3d=otf3d)
        _, _, otf3d_load = load_config(fname)

        np.testing.assert_allclose(otf3d_load.vals, vals)
        np.testing.assert_allclose(otf3d_load.immersion_n, 1.33)
        np.testing.assert_allclose(otf3d_load.cutoff_axial, otf3d.cutoff_axial)
        self.assertEqual(otf3d_load.name, "bead")
        self.assertEqual(otf3d_load.meta, "measured")

    def test_missing_entries(self):
        fd = param_to_dict(self._get_param())

        fd_missing = dict(fd)
        del fd_missing["microns-per-pxl"]
        with self.assertRaises(ConfigurationError):
            param_from_dict(fd_missing)

        fd_missing = dict(fd)
        del fd_missing["dir-2"]
        with self.assertRaises(ConfigurationError):
            param_from_dict(fd_missing)

        fd_bad = dict(fd)
        fd_bad["img-seq"] = "APZ"
        with self.assertRaises(ConfigurationError):
            param_from_dict(fd_bad)

    def test_invalid_entries(self):
        """
        entries which are present but unusable are reported as configuration errors
        """
        fd = param_to_dict(self._get_param())

        # parameters saved before the image size was set
        fd_bad = dict(fd)
        fd_bad["img-size-pxl"] = None
        with self.assertRaises(ConfigurationError):
            param_from_dict(fd_bad)

        fd_bad = dict(fd)
        fd_bad["dir-0"] = dict(fd["dir-0"])
        fd_bad["dir-0"]["modulations"] = [1., 0.9, 0.6, 0.5]
        with self.assertRaises(ConfigurationError):
            param_from_dict(fd_bad)

        # the unchanged folder still loads
        self.assertEqual(param_from_dict(fd).img_size, 256)

    def test_bad_files(self):
        fname = self.save_dir / "bad.json"
        with open(fname, "w") as f:
            f.write("{not json")
        with self.assertRaises(ConfigurationError):
            load_config(fname)

        with open(fname, "w") as f:
            json.dump({"other": 1}, f)
        with self.assertRaises(ConfigurationError):
            load_config(fname)


if __name__ == "__main__":
    unittest.main()
