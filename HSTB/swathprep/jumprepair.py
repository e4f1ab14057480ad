"""
Heuristic detection and correction of timestamp jumps in nominally uniformly sampled series.

Two repair policies exist, chosen per channel by the caller:

forward patch
    every anomalous timestamp is replaced with the previous (corrected) timestamp plus the expected interval
delete reversal
    like forward patch, but when an anomalous run contained a timestamp earlier than the time just before the run
    began (a clock rollback), every sample in the run is deleted

Thresholds are instrument specific and always supplied by the caller.
"""

import numpy as np

from HSTB.swathprep.ancillary import AncillarySeries
from HSTB.swathprep.numba_helpers import expected_interval, forward_patch_times, reversal_patch_times

forward_patch_policy = 'forward_patch'
delete_reversal_policy = 'delete_reversal'
repair_policies = [forward_patch_policy, delete_reversal_policy]


def series_expected_interval(series: AncillarySeries, threshold: float):
    """
    Expected sample interval of the series, see numba_helpers.expected_interval

    Returns
    -------
    float
        expected interval in seconds, None if the series has fewer than 2 samples
    """

    if len(series) < 2:
        return None
    return float(expected_interval(series.time, float(threshold)))


def forward_patch(series: AncillarySeries, threshold: float):
    """
    Forward patch policy, modifies the series in place.  Series with 2 or fewer samples are only checked for
    increasing time.

    Parameters
    ----------
    series
        ancillary series to repair
    threshold
        jump threshold in seconds

    Returns
    -------
    int
        number of timestamps patched
    int
        number of samples dropped to guarantee strictly increasing time
    """

    if threshold <= 0:
        raise ValueError('forward_patch: threshold must be greater than zero, found {}'.format(threshold))
    repaired = 0
    if len(series) > 2:
        newtimes, repaired = forward_patch_times(series.time.copy(), float(threshold))
        series.set_times(newtimes)
    dropped = series.finalize()
    return int(repaired), dropped


def delete_reversal(series: AncillarySeries, threshold: float):
    """
    Delete reversal policy, modifies the series in place.

    Parameters
    ----------
    series
        ancillary series to repair
    threshold
        jump threshold in seconds

    Returns
    -------
    int
        number of timestamps patched and retained
    int
        number of samples deleted (rolled back runs plus any left non-increasing)
    """

    if threshold <= 0:
        raise ValueError('delete_reversal: threshold must be greater than zero, found {}'.format(threshold))
    patched = 0
    deleted = 0
    if len(series) > 2:
        original = series.time.copy()
        newtimes, remove = reversal_patch_times(original, float(threshold))
        patched = int(np.count_nonzero((newtimes != original) & ~remove))
        series.set_times(newtimes)
        deleted = series.keep(~remove)
    deleted += series.finalize()
    return patched, deleted


def repair_series(series: AncillarySeries, threshold: float, policy: str = forward_patch_policy):
    """
    Apply the named repair policy to the series

    Returns
    -------
    int
        number of timestamps patched
    int
        number of samples removed
    """

    if policy == forward_patch_policy:
        return forward_patch(series, threshold)
    elif policy == delete_reversal_policy:
        return delete_reversal(series, threshold)
    raise ValueError('repair_series: policy must be one of {}, found {}'.format(repair_policies, policy))


class SurveyTimeJumpFix:
    """
    Streaming version of the forward patch applied to survey ping timestamps as they are read in the second pass.
    The expected interval is the mean interval between the first ping and the last corrected ping.  A ping whose
    delta from the last corrected time is anomalous is moved to the last corrected time plus either its raw delta
    (when the raw delta from the previous raw time is normal) or the expected interval.
    """

    def __init__(self, threshold: float):
        if threshold <= 0:
            raise ValueError('SurveyTimeJumpFix: threshold must be greater than zero, found {}'.format(threshold))
        self.threshold = threshold
        self.count = 0
        self.first_time = None
        self.last_time = None
        self.last_raw_time = None
        self.changed = 0

    def correct(self, time_d: float):
        """
        Return the corrected timestamp for the next ping in the stream

        Parameters
        ----------
        time_d
            raw ping time in utc seconds

        Returns
        -------
        float
            corrected ping time
        bool
            True if the timestamp was changed
        """

        self.count += 1
        raw_time = time_d
        changed = False
        if self.count == 1:
            self.first_time = time_d
        elif self.count > 2:
            expect = (self.last_time - self.first_time) / (self.count - 2)
            dtime_raw = raw_time - self.last_raw_time
            dtime = raw_time - self.last_time
            if abs(dtime - expect) >= self.threshold:
                if abs(dtime_raw - expect) >= self.threshold:
                    time_d = self.last_time + expect
                else:
                    time_d = self.last_time + dtime_raw
                changed = True
                self.changed += 1
        self.last_time = time_d
        self.last_raw_time = raw_time
        return time_d, changed
