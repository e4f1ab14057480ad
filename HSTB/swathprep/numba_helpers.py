import numba
import numpy as np


@numba.njit(nogil=True)
def expected_interval(times: np.array, threshold: float):
    """
    Expected sample interval of a nominally uniform series.  The naive estimate over the whole span is replaced by the
    first delta when the two agree to within the threshold, so a corrupted span does not bias the cadence.

    Parameters
    ----------
    times
        1d array of times in utc seconds, at least 2 long
    threshold
        jump threshold in seconds

    Returns
    -------
    float
        expected interval in seconds
    """

    n = len(times)
    expect = (times[n - 1] - times[0]) / (n - 1)
    if abs((times[1] - times[0]) - expect) < threshold:
        expect = times[1] - times[0]
    return expect


@numba.njit(nogil=True)
def forward_patch_times(times: np.array, threshold: float):
    """
    Replace every anomalous timestamp with the previous (corrected) timestamp plus the expected interval.

    Parameters
    ----------
    times
        1d array of times in utc seconds
    threshold
        a delta differing from the expected interval by at least this much is anomalous

    Returns
    -------
    np.array
        corrected copy of times
    int
        number of timestamps replaced
    """

    out = times.copy()
    repaired = 0
    n = len(out)
    if n <= 2:
        return out, repaired
    expect = expected_interval(out, threshold)
    for i in range(2, n):
        dtime = out[i] - out[i - 1]
        if abs(dtime - expect) >= threshold:
            out[i] = out[i - 1] + expect
            repaired += 1
    return out, repaired


@numba.njit(nogil=True)
def reversal_patch_times(times: np.array, threshold: float):
    """
    Patch anomalous timestamps like forward_patch_times, but flag for removal every sample of an anomalous run that
    contained a timestamp earlier than the time recorded just before the run started (clock rollback).  A run still
    open at the end of the series is left patched.

    Parameters
    ----------
    times
        1d array of times in utc seconds
    threshold
        a delta differing from the expected interval by at least this much is anomalous

    Returns
    -------
    np.array
        corrected copy of times
    np.array
        boolean mask, True for the samples to delete
    """

    out = times.copy()
    n = len(out)
    remove = np.zeros(n, dtype=np.bool_)
    if n <= 2:
        return out, remove
    expect = expected_interval(out, threshold)
    run_on = False
    run_reversed = False
    run_start_time = 0.0
    run_start_index = 0
    for i in range(2, n):
        dtime = out[i] - out[i - 1]
        if abs(dtime - expect) >= threshold:
            if not run_on:
                run_on = True
                run_reversed = False
                run_start_time = out[i - 1]
                run_start_index = i
            if out[i] < run_start_time:
                run_reversed = True
            out[i] = out[i - 1] + expect
        else:
            if run_on and run_reversed:
                for ii in range(run_start_index, i):
                    remove[ii] = True
            run_on = False
    return out, remove


@numba.njit(nogil=True)
def gaussian_time_filter(times: np.array, values: np.array, length: float, window: float):
    """
    Gaussian weighted mean of every sample within window * length seconds of each sample, weights renormalized by the
    weights actually used.  Times must be increasing.

    Parameters
    ----------
    times
        1d array of times in utc seconds
    values
        1d array of values, same length as times
    length
        filter length (sigma) in seconds, must be greater than zero
    window
        multiple of length that bounds the samples used

    Returns
    -------
    np.array
        filtered values
    """

    n = len(times)
    out = np.empty(n, dtype=np.float64)
    half_width = window * length
    denom = 2.0 * length * length
    first = 0
    for i in range(n):
        while times[first] < times[i] - half_width:
            first += 1
        wsum = 0.0
        vsum = 0.0
        j = first
        while j < n and times[j] <= times[i] + half_width:
            dtime = times[j] - times[i]
            weight = np.exp(-dtime * dtime / denom)
            wsum += weight
            vsum += weight * values[j]
            j += 1
        if wsum > 0.0:
            out[i] = vsum / wsum
        else:
            out[i] = values[i]
    return out
