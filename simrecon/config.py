"""
Save and load SIM parameters and OTF's as JSON.

The file holds up to three folders

* "sim-param": image geometry, filter settings and one "dir-N" folder per pattern direction
* "otf2d": either the parameters of an estimated OTF ("a-estimate") or measured samples ("data")
* "otf3d": measured 3D OTF samples with metadata

Complex OTF samples are stored as flat lists of interleaved real and imaginary parts.
"""

from typing import Union, Optional
from pathlib import Path
import json
import numpy as np
from simrecon.sim_param import SimParam, ImgSeq, WienerPlan
from simrecon.otf import OtfProvider, OtfProvider3D
from simrecon.errors import ConfigurationError, InvalidParameterError


def _get(folder: dict,
         key: str,
         path: str):
    try:
        return folder[key]
    except KeyError:
        raise ConfigurationError(f"missing entry '{key:s}' in '{path:s}'") from None


def _interleave(vals: np.ndarray) -> list[float]:
    flat = np.asarray(vals).ravel()
    out = np.zeros(2 * flat.size)
    out[::2] = flat.real
    out[1::2] = flat.imag
    return out.tolist()


def _deinterleave(data, path: str) -> np.ndarray:
    data = np.asarray(data, dtype=float)
    if data.ndim != 1 or data.size % 2 != 0:
        raise ConfigurationError(f"'{path:s}' must hold an even number of values")
    return data[::2] + 1j * data[1::2]


# #############################################
# sim parameters
# #############################################
def param_to_dict(param: SimParam) -> dict:
    """
    :param param:
    :return fd: contents of the "sim-param" folder
    """
    fd = {"nr-angles": param.nr_dirs,
          "nr-bands": param.nr_bands,
          "nr-phases": param.nr_phases,
          "img-seq": param.img_seq.name,
          "img-size-pxl": param.img_size,
          "microns-per-pxl": param.microns_per_pixel,
          "wiener-parameter": param.wiener_parameter,
          "apodization-cutoff": param.apo_cutoff,
          "apodization-bend": param.apo_bend,
          }

    for d, direction in enumerate(param.dirs):
        outer = direction.nr_bands - 1
        df = {"shift": [direction.px(outer), direction.py(outer)],
              "phase-offset": direction.pha_off,
              "modulations": direction.modulations.tolist()
              }
        if direction.has_individual_phases:
            df["phases"] = direction.phases.tolist()

        fd[f"dir-{d:d}"] = df

    return fd


def param_from_dict(fd: dict) -> SimParam:
    """
    :param fd: contents of the "sim-param" folder
    :return param:
    """
    path = "sim-param"
    param = SimParam(int(_get(fd, "nr-bands", path)),
                     int(_get(fd, "nr-angles", path)),
                     int(_get(fd, "nr-phases", path)))

    img_size = _get(fd, "img-size-pxl", path)
    microns_per_pxl = _get(fd, "microns-per-pxl", path)
    try:
        param.set_pxl_size(int(img_size), float(microns_per_pxl))
    except (TypeError, ValueError) as err:
        raise ConfigurationError(f"invalid image size {img_size} or pixel size {microns_per_pxl} in"
                                 f" '{path:s}'") from err

    img_seq = ImgSeq.from_name(_get(fd, "img-seq", path))
    if img_seq is None:
        raise ConfigurationError(f"unknown image sequence '{fd['img-seq']}'")
    param.img_seq = img_seq

    param.filter_plan = WienerPlan(float(_get(fd, "wiener-parameter", path)))
    param.apo_cutoff = float(_get(fd, "apodization-cutoff", path))
    if "apodization-bend" in fd:
        param.apo_bend = float(fd["apodization-bend"])

    for d, direction in enumerate(param.dirs):
        dpath = f"{path:s}/dir-{d:d}"
        df = _get(fd, f"dir-{d:d}", path)

        shift = _get(df, "shift", dpath)
        direction.set_px_py(float(shift[0]), float(shift[1]))
        direction.set_pha_off(float(_get(df, "phase-offset", dpath)))
        mods = _get(df, "modulations", dpath)
        try:
            for b, m in enumerate(mods):
                direction.set_modulation(b, float(m))
        except InvalidParameterError as err:
            raise ConfigurationError(f"'{dpath:s}' holds {len(mods):d} modulations for"
                                     f" {direction.nr_bands:d} bands") from err

        if "phases" in df:
            direction.set_phases(df["phases"], False)

    return param


# #############################################
# OTF's
# #############################################
def otf_to_dict(otf: OtfProvider) -> dict:
    """
    :param otf:
    :return fld: contents of the "otf2d" folder
    """
    fld = {"NA": otf.na,
           "emission": int(otf.wavelength)}

    if otf.is_estimate:
        fld["a-estimate"] = otf.estimate_a
    else:
        data = {"bands": otf.nbands,
                "samples": otf.nsamples,
                "cycles": otf.cycles_per_micron}
        for b in range(otf.nbands):
            data[f"band-{b:d}"] = _interleave(otf.vals[b])
        fld["data"] = data

    if otf.use_attenuation:
        fld["attenuation"] = {"strength": otf.att_strength,
                              "FWHM": otf.att_fwhm}

    return fld


def otf_from_dict(fld: dict) -> OtfProvider:
    """
    :param fld: contents of the "otf2d" folder
    :return otf:
    """
    path = "otf2d"
    na = float(_get(fld, "NA", path))
    wavelength = float(_get(fld, "emission", path))

    if "data" not in fld:
        otf = OtfProvider.from_estimate(na, wavelength, float(_get(fld, "a-estimate", path)))
    else:
        data = fld["data"]
        dpath = f"{path:s}/data"
        bands = int(_get(data, "bands", dpath))
        nsamples = int(_get(data, "samples", dpath))

        samples = []
        for b in range(bands):
            vals = _deinterleave(_get(data, f"band-{b:d}", dpath), f"{dpath:s}/band-{b:d}")
            if vals.size != nsamples:
                raise ConfigurationError(f"band {b:d} holds {vals.size:d} samples, but {nsamples:d} were expected")
            samples.append(vals)

        otf = OtfProvider.from_data(bands, np.stack(samples, axis=0), float(_get(data, "cycles", dpath)),
                                    na, wavelength)

    if "attenuation" in fld:
        att = fld["attenuation"]
        apath = f"{path:s}/attenuation"
        otf.set_attenuation(float(_get(att, "strength", apath)), float(_get(att, "FWHM", apath)))

    return otf


def otf3d_to_dict(otf3d: OtfProvider3D) -> dict:
    """
    :param otf3d:
    :return fld: contents of the "otf3d" folder
    """
    data = {"bands": otf3d.nbands,
            "samples-lateral": otf3d.samples_lateral,
            "samples-axial": otf3d.samples_axial,
            "cycles-lateral": otf3d.cycles_per_micron_lateral,
            "cycles-axial": otf3d.cycles_per_micron_axial}
    # lateral index runs fastest
    for b in range(otf3d.nbands):
        data[f"band-{b:d}"] = _interleave(otf3d.vals[b])

    return {"NA": otf3d.na,
            "emission": int(otf3d.wavelength),
            "n-immersion": otf3d.immersion_n,
            "otf-name": otf3d.name,
            "otf-meta": otf3d.meta,
            "data": data}


def otf3d_from_dict(fld: dict) -> OtfProvider3D:
    """
    :param fld: contents of the "otf3d" folder
    :return otf3d:
    """
    path = "otf3d"
    data = _get(fld, "data", path)
    dpath = f"{path:s}/data"

    bands = int(_get(data, "bands", dpath))
    bands_data = [_get(data, f"band-{b:d}", dpath) for b in range(bands)]

    kwargs = {"na": float(_get(fld, "NA", path)),
              "wavelength": float(_get(fld, "emission", path))}
    if "n-immersion" in fld:
        kwargs["immersion_n"] = float(fld["n-immersion"])
    if "otf-name" in fld:
        kwargs["name"] = fld["otf-name"]
    if "otf-meta" in fld:
        kwargs["meta"] = fld["otf-meta"]

    return OtfProvider3D.create_from_data(bands_data,
                                          float(_get(data, "cycles-lateral", dpath)),
                                          float(_get(data, "cycles-axial", dpath)),
                                          int(_get(data, "samples-lateral", dpath)),
                                          int(_get(data, "samples-axial", dpath)),
                                          **kwargs)


# #############################################
# files
# #############################################
def save_config(fname: Union[str, Path],
                param: Optional[SimParam] = None,
                otf: Optional[OtfProvider] = None,
                otf3d: Optional[OtfProvider3D] = None) -> Path:
    """
    Save parameters and OTF's to a JSON file

    :param fname:
    :param param: if param has an OTF and otf is None, param.otf is saved
    :param otf:
    :param otf3d:
    :return fname:
    """
    if otf is None and param is not None:
        otf = param.otf

    cfg = {}
    if param is not None:
        cfg["sim-param"] = param_to_dict(param)
    if otf is not None:
        cfg["otf2d"] = otf_to_dict(otf)
    if otf3d is not None:
        cfg["otf3d"] = otf3d_to_dict(otf3d)

    fname = Path(fname)
    with open(fname, "w") as f:
        json.dump(cfg, f, indent="\t")

    return fname


def load_config(fname: Union[str, Path]) -> (Optional[SimParam], Optional[OtfProvider], Optional[OtfProvider3D]):
    """
    Load parameters and OTF's from a JSON file written by save_config(). If both parameters and a 2D OTF are
    present, the OTF is attached to the parameters.

    :param fname:
    :return param, otf, otf3d: None for folders not present in the file
    """
    with open(fname, "r") as f:
        try:
            cfg = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"could not parse configuration file {fname}") from e

    if not any(k in cfg for k in ["sim-param", "otf2d", "otf3d"]):
        raise ConfigurationError(f"no 'sim-param', 'otf2d' or 'otf3d' entries found in {fname}")

    param = param_from_dict(cfg["sim-param"]) if "sim-param" in cfg else None
    otf = otf_from_dict(cfg["otf2d"]) if "otf2d" in cfg else None
    otf3d = otf3d_from_dict(cfg["otf3d"]) if "otf3d" in cfg else None

    if param is not None and otf is not None:
        param.otf = otf

    return param, otf, otf3d
