import numpy as np
import pytest

from nucreads.coverage import coverage
from nucreads.errors import ConfigurationError
from nucreads.models import FUZZY, WELL_POSITIONED
from nucreads.synthetic import SYNTHETIC_CONTIG, SyntheticParams, generate_synthetic_map


def test_well_positioned_only_map():
    smap = generate_synthetic_map(seed=1, wp_num=50, wp_del=0, fuz_num=0, max_cover=20)

    assert len(smap.wp.starts) == 50
    assert smap.wp.starts[0] == 1
    assert set(np.diff(smap.wp.starts).tolist()) == {147 + 20}
    assert smap.wp.nreads.min() >= 1
    assert smap.wp.nreads.max() <= 20

    assert len(smap.fuz.reads) == 0
    assert len(smap.fuz.starts) == 0
    assert len(smap.reads) == int(smap.wp.nreads.sum())
    assert smap.control is None
    assert smap.ratio is None


def test_reads_are_jittered_copies_of_their_nucleosome():
    smap = generate_synthetic_map(seed=5, wp_num=30, wp_del=0, wp_var=10, fuz_num=0)
    nominal = np.repeat(smap.wp.starts, smap.wp.nreads)
    starts = smap.wp.reads.starts()
    assert len(starts) == len(nominal)
    assert np.abs(starts - nominal).max() <= 10
    assert all(r.width == 147 for r in smap.reads)
    assert smap.reads.chromosomes == [SYNTHETIC_CONTIG]


def test_same_seed_same_map_with_deletions():
    params = SyntheticParams(seed=1, wp_num=50, wp_del=10, fuz_num=20)
    a = generate_synthetic_map(params)
    b = generate_synthetic_map(params)

    assert a.reads == b.reads
    assert np.array_equal(a.wp.nreads, b.wp.nreads)
    assert np.array_equal(a.fuz.starts, b.fuz.starts)
    assert np.array_equal(a.fuz.nreads, b.fuz.nreads)

    n_deleted = int((a.wp.nreads == 0).sum())
    # deletion indices are drawn with replacement, so possibly fewer than wp_del
    assert 0 <= n_deleted <= 10
    assert np.array_equal(a.wp.nreads == 0, b.wp.nreads == 0)


def test_different_seeds_give_different_maps():
    a = generate_synthetic_map(seed=1, wp_num=50, fuz_num=20)
    b = generate_synthetic_map(seed=2, wp_num=50, fuz_num=20)
    assert a.reads != b.reads


def test_fuzzy_nucleosomes_within_region():
    smap = generate_synthetic_map(seed=7, wp_num=20, fuz_num=40, fuz_var=50, max_cover=5)
    region = 20 * (147 + 20)
    assert smap.fuz.starts.min() >= 1
    assert smap.fuz.starts.max() <= region
    assert smap.fuz.nreads.min() >= 1
    assert smap.fuz.nreads.max() <= 5
    assert len(smap.fuz.reads) == int(smap.fuz.nreads.sum())
    # merged collection is well-positioned reads followed by fuzzy reads
    assert list(smap.reads) == list(smap.wp.reads) + list(smap.fuz.reads)


def test_ground_truth_descriptors():
    smap = generate_synthetic_map(seed=3, wp_num=4, wp_del=0, fuz_num=2)
    wp = smap.wp.descriptors()
    assert [d.category for d in wp] == [WELL_POSITIONED] * 4
    assert [d.nominal_start for d in wp] == [1, 168, 335, 502]
    assert smap.fuz.descriptors()[0].category == FUZZY
    assert smap.wp.dyads.tolist() == [74, 241, 408, 575]


def test_control_and_ratio():
    smap = generate_synthetic_map(seed=1, wp_num=50, wp_del=0, fuz_num=20, as_ratio=True)
    assert smap.control is not None
    assert smap.ratio is not None

    assert len(smap.control) == len(smap.reads)
    widths = np.array([r.width for r in smap.control])
    assert widths.min() >= 50
    assert widths.max() <= 250
    assert smap.control.starts().min() >= 1
    assert smap.control.starts().max() <= smap.reads.starts().max()

    syn_cov = coverage(smap.reads)
    ctl_cov = coverage(smap.control)
    n = max(len(syn_cov), len(ctl_cov))
    syn_cov = np.pad(syn_cov, (0, n - len(syn_cov)))
    ctl_cov = np.pad(ctl_cov, (0, n - len(ctl_cov)))

    assert len(smap.ratio) == n
    undefined = (syn_cov == 0) | (ctl_cov == 0)
    assert np.array_equal(np.ma.getmaskarray(smap.ratio), undefined)
    assert np.isfinite(smap.ratio.compressed()).all()


def test_control_draws_do_not_change_synthetic_reads():
    plain = generate_synthetic_map(seed=11, wp_num=30, fuz_num=10)
    with_ratio = generate_synthetic_map(seed=11, wp_num=30, fuz_num=10, as_ratio=True)
    assert plain.reads == with_ratio.reads


def test_end_to_end_reproducible_ratio():
    a = generate_synthetic_map(seed=42, wp_num=40, fuz_num=15, as_ratio=True)
    b = generate_synthetic_map(seed=42, wp_num=40, fuz_num=15, as_ratio=True)
    assert a.reads == b.reads
    assert a.control == b.control
    assert np.array_equal(np.ma.getmaskarray(a.ratio), np.ma.getmaskarray(b.ratio))
    assert np.array_equal(a.ratio.compressed(), b.ratio.compressed())


def test_empty_map_with_ratio():
    smap = generate_synthetic_map(seed=1, wp_num=0, wp_del=0, fuz_num=0, as_ratio=True)
    assert smap.reads.is_empty
    assert smap.control is not None and smap.control.is_empty
    assert len(smap.ratio) == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"wp_num": -1},
        {"fuz_num": -3},
        {"wp_var": -1},
        {"max_cover": 0},
        {"nuc_len": 0},
        {"wp_num": 5, "wp_del": 7},
        {"wp_num": 0, "wp_del": 0, "fuz_num": 5},
        {"seed": -1},
        {"wp_num": 2.5},
    ],
)
def test_invalid_parameters(kwargs):
    with pytest.raises(ConfigurationError):
        generate_synthetic_map(**kwargs)


def test_wp_del_may_be_one_more_than_wp_num():
    smap = generate_synthetic_map(seed=1, wp_num=3, wp_del=4, fuz_num=0)
    assert len(smap.wp.nreads) == 3


def test_params_and_kwargs_are_exclusive():
    with pytest.raises(TypeError):
        generate_synthetic_map(SyntheticParams(seed=1), seed=2)


def test_summary_is_jsonable():
    smap = generate_synthetic_map(seed=1, wp_num=10, fuz_num=3, as_ratio=True)
    summary = smap.summary()
    assert summary["n_reads"] == len(smap.reads)
    assert summary["n_control_reads"] == len(smap.reads)
    assert summary["params"]["seed"] == 1
    assert summary["ratio_missing"] >= 0


def _rint(x):
    return np.rint(x).astype(np.int64)


def test_draws_follow_documented_order():
    params = SyntheticParams(
        wp_num=12, wp_del=8, wp_var=15, fuz_num=6, fuz_var=40, max_cover=9, seed=2024, as_ratio=True
    )
    smap = generate_synthetic_map(params)

    rng = np.random.default_rng(2024)
    wp_nreads = _rint(rng.uniform(1, 9, size=12))
    deleted = _rint(rng.uniform(0, 12, size=8))
    for k in deleted:
        if k >= 1:
            wp_nreads[k - 1] = 0
    wp_starts = 167 * np.arange(12) + 1
    wp_jitter = _rint(rng.uniform(-15, 15, size=int(wp_nreads.sum())))
    fuz_starts = _rint(rng.uniform(1, 12 * 167, size=6))
    fuz_nreads = _rint(rng.uniform(1, 9, size=6))
    fuz_jitter = _rint(rng.uniform(-40, 40, size=int(fuz_nreads.sum())))

    assert smap.wp.nreads.tolist() == wp_nreads.tolist()
    assert smap.wp.reads.starts().tolist() == (np.repeat(wp_starts, wp_nreads) + wp_jitter).tolist()
    assert smap.fuz.starts.tolist() == fuz_starts.tolist()
    assert smap.fuz.nreads.tolist() == fuz_nreads.tolist()
    assert smap.fuz.reads.starts().tolist() == (np.repeat(fuz_starts, fuz_nreads) + fuz_jitter).tolist()

    n = len(smap.reads)
    max_start = max(int(smap.reads.starts().max()), 1)
    control_starts = _rint(rng.uniform(1, max_start, size=n))
    control_widths = _rint(rng.uniform(50, 250, size=n))
    assert smap.control.starts().tolist() == control_starts.tolist()
    assert [r.width for r in smap.control] == control_widths.tolist()


def test_deletion_zeroes_sampled_centers():
    smap = generate_synthetic_map(seed=3, wp_num=5, wp_del=6, fuz_num=0, max_cover=20)

    rng = np.random.default_rng(3)
    rng.uniform(1, 20, size=5)
    deleted = _rint(rng.uniform(0, 5, size=6))
    # index k is the k-th center, 0 hits none
    expected = sorted({int(k) - 1 for k in deleted if k >= 1})

    assert expected
    assert np.flatnonzero(smap.wp.nreads == 0).tolist() == expected
    assert len(smap.wp.reads) == int(smap.wp.nreads.sum())


def test_no_well_positioned_nucleosomes_gives_empty_map():
    smap = generate_synthetic_map(seed=9, wp_num=0, wp_del=1, fuz_num=0)
    assert smap.reads.is_empty
    assert smap.summary()["n_wp_deleted"] == 0
