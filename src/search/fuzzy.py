"""Bitap (shift-or) approximate string matching with location-aware scoring.

A match with ``errors`` edits found ``proximity`` characters away from the
expected location scores ``errors / len(pattern) + proximity / distance``;
0 is a perfect match and anything above ``threshold`` is rejected. The
search window therefore shrinks as the allowed error count grows.

Before the bit-parallel pass each text goes through ``could_match``, a
rapidfuzz ``partial_ratio`` check over the same window. It only rejects
texts the Bitap pass would reject as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from rapidfuzz import fuzz

Span = Tuple[int, int]


@dataclass(frozen=True)
class MatchResult:
    is_match: bool
    score: float
    indices: Tuple[Span, ...] = ()


NO_MATCH = MatchResult(False, 1.0)


def compute_score(
    pattern_length: int,
    errors: int = 0,
    current_location: int = 0,
    expected_location: int = 0,
    distance: int = 100,
) -> float:
    accuracy = errors / pattern_length
    proximity = abs(expected_location - current_location)
    if not distance:
        return 1.0 if proximity else accuracy
    return accuracy + proximity / distance


def pattern_alphabet(pattern: str) -> Dict[str, int]:
    """Bit mask per character: bit (len - i - 1) is set where pattern[i] == char."""
    masks: Dict[str, int] = {}
    length = len(pattern)
    for i, char in enumerate(pattern):
        masks[char] = masks.get(char, 0) | (1 << (length - i - 1))
    return masks


def mask_to_indices(match_mask: List[int], min_length: int = 1) -> Tuple[Span, ...]:
    """Collapse a per-character hit mask into (start, end) runs of at least ``min_length``."""
    spans: List[Span] = []
    start = -1
    for i, hit in enumerate(match_mask):
        if hit and start == -1:
            start = i
        elif not hit and start != -1:
            if i - start >= min_length:
                spans.append((start, i - 1))
            start = -1
    if start != -1 and len(match_mask) - start >= min_length:
        spans.append((start, len(match_mask) - 1))
    return tuple(spans)


class BitapMatcher:
    """Matches one lower-cased pattern against many lower-cased texts."""

    def __init__(
        self,
        pattern: str,
        threshold: float = 0.3,
        distance: int = 100,
        location: int = 0,
        min_match_char_length: int = 1,
    ) -> None:
        self.pattern = pattern.lower()
        self.threshold = threshold
        self.distance = distance
        self.location = location
        self.min_match_char_length = min_match_char_length
        self._alphabet = pattern_alphabet(self.pattern)
        # Bitap reads at most this many characters either side of the expected
        # location (plus the pattern itself).
        self._reach: Optional[int] = None
        if 0 <= threshold < 1 and distance >= 0:
            self._reach = int(threshold * distance) + 1 if distance else 0

    def match(self, text: str) -> MatchResult:
        if not self.pattern or not text:
            return NO_MATCH
        if text == self.pattern:
            return MatchResult(True, 0.0, ((0, len(text) - 1),))
        if not self.could_match(text):
            return NO_MATCH
        return self._search(text)

    def could_match(self, text: str) -> bool:
        """Necessary condition for ``match`` to accept ``text``.

        An alignment accepted with ``e`` errors lies inside the scanned window
        and shares at least ``len(pattern) - e`` characters with some
        pattern-length slice of it, so its ``partial_ratio`` is at least
        ``1 - e / len(pattern)`` (``1 - e / len(window)`` for a shorter window).
        """
        if self._reach is None:
            return True
        pattern_length = len(self.pattern)
        expected = max(0, min(self.location, len(text)))
        window = text[max(0, expected - self._reach - 1) : expected + self._reach + pattern_length + 1]
        size = len(window)
        max_errors = self.threshold * pattern_length
        if size >= pattern_length:
            cutoff = 100 * (1 - self.threshold)
        elif pattern_length - size > max_errors:
            return False
        else:
            cutoff = 100 * (1 - max_errors / size)
        if cutoff <= 0:
            return True
        return fuzz.partial_ratio(self.pattern, window, score_cutoff=cutoff - 1e-6) > 0

    def _search(self, text: str) -> MatchResult:
        pattern = self.pattern
        alphabet = self._alphabet
        distance = self.distance
        pattern_length = len(pattern)
        text_length = len(text)
        expected = max(0, min(self.location, text_length))
        threshold = self.threshold
        compute_matches = self.min_match_char_length > 1
        match_mask: Optional[List[int]] = [0] * text_length if compute_matches else None

        # Exact occurrences tighten the threshold before the fuzzy pass.
        best_location = expected
        index = text.find(pattern, best_location)
        while index > -1:
            score = compute_score(pattern_length, 0, index, expected, distance)
            threshold = min(score, threshold)
            best_location = index + pattern_length
            if match_mask is not None:
                for k in range(index, index + pattern_length):
                    match_mask[k] = 1
            index = text.find(pattern, best_location)

        best_location = -1
        last_bits: List[int] = []
        final_score = 1.0
        bin_max = pattern_length + text_length
        hit_bit = 1 << (pattern_length - 1)

        for errors in range(pattern_length):
            # Largest distance from the expected location that can still score
            # under the current threshold with this many errors.
            bin_min = 0
            bin_mid = bin_max
            while bin_min < bin_mid:
                score = compute_score(pattern_length, errors, expected + bin_mid, expected, distance)
                if score <= threshold:
                    bin_min = bin_mid
                else:
                    bin_max = bin_mid
                bin_mid = (bin_max - bin_min) // 2 + bin_min
            bin_max = bin_mid

            start = max(1, expected - bin_mid + 1)
            finish = min(expected + bin_mid, text_length) + pattern_length
            bits = [0] * (finish + 2)
            bits[finish + 1] = (1 << errors) - 1

            j = finish
            while j >= start:
                current = j - 1
                char_match = alphabet.get(text[current], 0) if current < text_length else 0
                if match_mask is not None and current < text_length:
                    match_mask[current] = 1 if char_match else 0

                bits[j] = ((bits[j + 1] << 1) | 1) & char_match
                if errors:
                    bits[j] |= ((last_bits[j + 1] | last_bits[j]) << 1) | 1 | last_bits[j + 1]

                if bits[j] & hit_bit:
                    final_score = compute_score(pattern_length, errors, current, expected, distance)
                    if final_score <= threshold:
                        threshold = final_score
                        best_location = current
                        if best_location <= expected:
                            break
                        start = max(1, 2 * expected - best_location)
                j -= 1

            if compute_score(pattern_length, errors + 1, expected, expected, distance) > threshold:
                break
            last_bits = bits

        is_match = best_location >= 0
        indices: Tuple[Span, ...] = ()
        if match_mask is not None:
            indices = mask_to_indices(match_mask, self.min_match_char_length)
            if not indices:
                is_match = False
        return MatchResult(is_match, max(0.001, final_score), indices)
