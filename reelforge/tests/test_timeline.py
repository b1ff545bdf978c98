"""Tests for slide timeline computation and media sets."""
import math

import pytest

from reelforge.errors import InvalidMediaSetError
from reelforge.playback.timeline import (
    MediaSet,
    SlideInterval,
    compute_timeline,
    duration_in_frames,
)


class TestComputeTimeline:
    """Partitioning the narration into per-slide intervals."""

    def test_even_partition_from_audio(self):
        """Five images over 50s of audio get 10s each."""
        timeline = compute_timeline(5, 50.0, 2.0)

        assert [(i.start, i.end) for i in timeline.slide_intervals] == [
            (0.0, 10.0), (10.0, 20.0), (20.0, 30.0), (30.0, 40.0), (40.0, 50.0),
        ]
        assert timeline.total_duration == 50.0
        assert not timeline.extends_past_audio

    def test_floor_applies_when_audio_is_short(self):
        """Four seconds of audio for five images clamps every slide to 2s."""
        timeline = compute_timeline(5, 4.0, 2.0)

        assert all(i.duration == pytest.approx(2.0) for i in timeline.slide_intervals)
        assert timeline.total_duration == 10.0
        assert timeline.audio_duration == 4.0
        assert timeline.extends_past_audio

    @pytest.mark.parametrize("duration", [None, 0, 0.0, float("nan")])
    def test_unknown_duration_uses_minimum(self, duration):
        timeline = compute_timeline(3, duration, 2.5)

        assert timeline.total_duration == 7.5
        assert timeline.audio_duration is None
        assert [i.start for i in timeline.slide_intervals] == [0.0, 2.5, 5.0]

    def test_single_image_spans_whole_duration(self):
        timeline = compute_timeline(1, 37.3)

        assert timeline.slide_intervals == (SlideInterval(0.0, 37.3),)

    def test_naive_width_exactly_at_floor(self):
        """A naive width equal to the floor keeps the audio length."""
        timeline = compute_timeline(4, 8.0, 2.0)

        assert timeline.total_duration == 8.0
        assert timeline.slide_duration == 2.0

    @pytest.mark.parametrize("count", [1, 2, 3, 7, 13])
    @pytest.mark.parametrize("duration", [0.0, 1.3, 9.99, 26.0, 61.7, 300.0])
    def test_intervals_are_contiguous_and_respect_floor(self, count, duration):
        minimum = 2.0
        timeline = compute_timeline(count, duration, minimum)
        intervals = timeline.slide_intervals

        assert len(intervals) == count
        assert intervals[0].start == 0.0
        assert intervals[-1].end == timeline.total_duration
        for previous, current in zip(intervals, intervals[1:]):
            assert previous.end == current.start
        for interval in intervals:
            assert interval.end > interval.start
            assert interval.duration >= minimum - 1e-9

    def test_recomputation_is_bit_identical(self):
        first = compute_timeline(7, 61.7, 2.0)
        second = compute_timeline(7, 61.7, 2.0)

        assert first == second
        assert [i.end for i in first.slide_intervals] == [i.end for i in second.slide_intervals]

    def test_rejects_zero_images(self):
        with pytest.raises(ValueError, match="image_count"):
            compute_timeline(0, 10.0)

    def test_rejects_negative_duration(self):
        with pytest.raises(ValueError, match="audio_duration_seconds"):
            compute_timeline(2, -1.0)

    def test_rejects_non_positive_minimum(self):
        with pytest.raises(ValueError, match="minimum_slide_seconds"):
            compute_timeline(2, 10.0, 0)


class TestSlideLookup:
    """Finding the active slide for a playback position."""

    def test_seek_position_maps_to_fourth_slide(self):
        timeline = compute_timeline(5, 50.0, 2.0)
        assert timeline.slide_at(35.0) == 3

    def test_boundaries_belong_to_the_later_slide(self):
        timeline = compute_timeline(5, 50.0, 2.0)
        assert timeline.slide_at(0.0) == 0
        assert timeline.slide_at(10.0) == 1
        assert timeline.slide_at(49.999) == 4

    def test_no_slide_past_the_end(self):
        timeline = compute_timeline(5, 50.0, 2.0)
        assert timeline.slide_at(50.0) is None
        assert timeline.slide_at(120.0) is None
        assert timeline.slide_at(-0.1) is None

    def test_index_is_monotonic_in_position(self):
        timeline = compute_timeline(6, 33.0, 2.0)
        positions = [p / 10 for p in range(0, 330)]
        indexes = [timeline.slide_at(p) for p in positions]
        assert indexes == sorted(indexes)

    def test_start_of_out_of_range(self):
        timeline = compute_timeline(3, 9.0)
        with pytest.raises(IndexError):
            timeline.start_of(3)

    def test_to_dict_uses_camel_case(self):
        data = compute_timeline(2, 10.0).to_dict()
        assert data["totalDuration"] == 10.0
        assert data["slideDuration"] == 5.0
        assert data["slideIntervals"][1] == {"start": 5.0, "end": 10.0}

    def test_duration_in_frames_rounds_up(self):
        assert duration_in_frames(compute_timeline(3, 10.01), fps=30) == math.ceil(10.01 * 30)


class TestMediaSet:

    def test_images_are_frozen_into_a_tuple(self):
        images = ["a.png", "b.png"]
        media_set = MediaSet(images, "voice.mp3")
        images.append("c.png")

        assert media_set.images == ("a.png", "b.png")
        with pytest.raises(AttributeError):
            media_set.images = ("x.png",)

    def test_edits_create_new_sets(self):
        original = MediaSet(("a.png",), None)
        edited = original.with_images(["b.png", "c.png"]).with_audio("voice.mp3")

        assert original.images == ("a.png",)
        assert not original.has_audio
        assert edited.image_count == 2
        assert edited.audio_track == "voice.mp3"

    def test_requires_an_image(self):
        with pytest.raises(InvalidMediaSetError):
            MediaSet(())

    def test_blank_audio_counts_as_absent(self):
        assert MediaSet(("a.png",), "  ").audio_track is None
