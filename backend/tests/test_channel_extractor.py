"""Tests for per-channel summaries extracted from MIDI timelines and files."""

from __future__ import annotations

import mido

from channel_router.channel_extractor import analyze_channel_content, extract_channels, timeline_from_midi


def _on(channel, note, velocity=100, time=0, **extra):
    return dict({"type": "noteOn", "channel": channel, "note": note, "velocity": velocity, "time": time}, **extra)


class TestExtractChannels:
    def test_empty_or_missing_timeline(self):
        assert extract_channels([]) == []
        assert extract_channels(None) == []

    def test_only_note_on_events_count(self):
        timeline = [
            {"type": "controlChange", "channel": 3, "controller": 7, "value": 100, "time": 0},
            {"type": "noteOff", "channel": 4, "note": 60, "time": 10},
            {"type": "programChange", "channel": 5, "program": 10, "time": 0},
            _on(2, 64),
        ]
        channels = extract_channels(timeline)
        assert [c.number for c in channels] == [2]

    def test_sorted_by_channel_with_display_names(self, band_timeline):
        channels = extract_channels(band_timeline)
        assert [c.number for c in channels] == [0, 1, 9]
        assert [c.name for c in channels] == ["Channel 1", "Channel 2", "Channel 10"]

    def test_ranges_counts_and_samples(self, band_timeline):
        piano = extract_channels(band_timeline)[0]
        assert piano.note_count == 3
        assert (piano.note_range.min, piano.note_range.max) == (21, 96)
        assert (piano.velocity.min, piano.velocity.max) == (40, 101)
        assert [n.pitch for n in piano.notes] == [21, 60, 96]
        assert piano.notes[1].time == 100
        assert piano.instrument_hint == "Piano"

    def test_velocity_avg_is_min_max_midpoint_not_mean(self):
        """
        avg is round((min + max) / 2), not the mean of all velocities.
        Velocities 40, 100, 101: midpoint 70.5 -> 71, true mean would be 80.33.
        """
        channels = extract_channels([_on(0, 60, 40), _on(0, 62, 100), _on(0, 64, 101)])
        assert channels[0].velocity.avg == 71
        assert channels[0].velocity.avg != round((40 + 100 + 101) / 3)

    def test_single_note_range_is_not_degenerate(self):
        ch = extract_channels([_on(3, 50, 64)])[0]
        assert ch.note_range.min == ch.note_range.max == 50
        assert ch.velocity.avg == 64

    def test_repeated_extraction_is_identical(self, band_timeline):
        first = [c.to_dict(include_notes=True) for c in extract_channels(band_timeline)]
        second = [c.to_dict(include_notes=True) for c in extract_channels(band_timeline)]
        assert first == second

    def test_hint_resolution(self):
        channels = extract_channels([
            _on(0, 60, instrument="Strings", program=33),
            _on(1, 40, program=33),
            _on(9, 36, program=0),
            _on(4, 60),
        ])
        hints = {c.number: c.instrument_hint for c in channels}
        assert hints == {0: "Strings", 1: "Bass", 9: "Drum", 4: "Unknown"}
        assert channels[1].program == 33


class TestTimelineFromMidi:
    def test_notes_durations_and_programs(self, minimal_midi_path):
        midi = mido.MidiFile(str(minimal_midi_path))
        timeline = timeline_from_midi(midi)
        note_ons = [e for e in timeline if e["type"] == "noteOn"]
        assert len(note_ons) == 8
        assert all(e["duration"] == 240 for e in note_ons)
        assert all(e["program"] == 0 and e["instrument"] == "Piano" for e in note_ons)
        assert [e["time"] for e in note_ons] == [i * 240 for i in range(8)]

    def test_control_changes_are_carried(self, minimal_midi_path):
        timeline = timeline_from_midi(mido.MidiFile(str(minimal_midi_path)))
        cc = [e for e in timeline if e["type"] == "controlChange"]
        assert cc == [{"type": "controlChange", "channel": 0, "controller": 7, "value": 100, "time": 0}]

    def test_timeline_is_time_ordered(self, minimal_midi_path):
        timeline = timeline_from_midi(mido.MidiFile(str(minimal_midi_path)))
        times = [e["time"] for e in timeline]
        assert times == sorted(times)

    def test_extract_from_file(self, minimal_midi_path):
        channels = extract_channels(timeline_from_midi(mido.MidiFile(str(minimal_midi_path))))
        assert len(channels) == 1
        ch = channels[0]
        assert ch.number == 0
        assert ch.note_count == 8
        assert (ch.note_range.min, ch.note_range.max) == (55, 72)
        assert ch.velocity.avg == 80
        assert ch.instrument_hint == "Piano"

    def test_zero_velocity_note_on_closes_note(self):
        mid = mido.MidiFile(type=1, ticks_per_beat=480)
        track = mido.MidiTrack()
        track.append(mido.Message("note_on", note=40, velocity=90, channel=2, time=0))
        track.append(mido.Message("note_on", note=40, velocity=0, channel=2, time=120))
        mid.tracks.append(track)
        timeline = timeline_from_midi(mid)
        assert [e["type"] for e in timeline] == ["noteOn", "noteOff"]
        assert timeline[0]["duration"] == 120
        assert "instrument" not in timeline[0]
        assert extract_channels(timeline)[0].instrument_hint == "Unknown"

    def test_empty_file_gives_no_channels(self):
        mid = mido.MidiFile(type=1, ticks_per_beat=480)
        track = mido.MidiTrack()
        track.append(mido.MetaMessage("end_of_track", time=0))
        mid.tracks.append(track)
        assert extract_channels(timeline_from_midi(mid)) == []

    def test_drum_channel_without_program_change(self):
        mid = mido.MidiFile(type=1, ticks_per_beat=480)
        track = mido.MidiTrack()
        for note in (36, 38, 42):
            track.append(mido.Message("note_on", note=note, velocity=100, channel=9, time=0))
            track.append(mido.Message("note_off", note=note, velocity=0, channel=9, time=120))
        mid.tracks.append(track)
        timeline = timeline_from_midi(mid)
        note_ons = [e for e in timeline if e["type"] == "noteOn"]
        assert all(e["instrument"] == "Drum" and "program" not in e for e in note_ons)
        channels = extract_channels(timeline)
        assert [(c.number, c.instrument_hint) for c in channels] == [(9, "Drum")]

    def test_drum_hint_without_program_on_plain_timeline(self):
        assert extract_channels([_on(9, 36)])[0].instrument_hint == "Drum"

    def test_program_change_in_later_track_applies_to_earlier_track(self):
        mid = mido.MidiFile(type=1, ticks_per_beat=480)
        notes = mido.MidiTrack()
        notes.append(mido.Message("note_on", note=40, velocity=90, channel=1, time=0))
        notes.append(mido.Message("note_off", note=40, velocity=0, channel=1, time=240))
        setup = mido.MidiTrack()
        setup.append(mido.Message("program_change", program=33, channel=1, time=0))
        mid.tracks.extend([notes, setup])
        channels = extract_channels(timeline_from_midi(mid))
        assert channels[0].program == 33
        assert channels[0].instrument_hint == "Bass"

    def test_mid_song_program_change_only_affects_later_notes(self):
        mid = mido.MidiFile(type=1, ticks_per_beat=480)
        track = mido.MidiTrack()
        track.append(mido.Message("program_change", program=0, channel=0, time=0))
        track.append(mido.Message("note_on", note=60, velocity=90, channel=0, time=0))
        track.append(mido.Message("note_off", note=60, velocity=0, channel=0, time=480))
        track.append(mido.Message("program_change", program=40, channel=0, time=0))
        track.append(mido.Message("note_on", note=67, velocity=90, channel=0, time=0))
        track.append(mido.Message("note_off", note=67, velocity=0, channel=0, time=480))
        mid.tracks.append(track)
        note_ons = [e for e in timeline_from_midi(mid) if e["type"] == "noteOn"]
        assert [(e["program"], e["instrument"]) for e in note_ons] == [(0, "Piano"), (40, "Strings")]


class TestAnalyzeChannelContent:
    def test_drum_channel_is_percussion(self):
        ch = extract_channels([_on(9, 80)])[0]
        assert analyze_channel_content(ch) == {"type": "percussion", "confidence": 1.0}

    def test_low_average_pitch_is_bass(self):
        ch = extract_channels([_on(1, 30), _on(1, 40)])[0]
        assert analyze_channel_content(ch)["type"] == "bass"

    def test_high_average_pitch_is_lead(self):
        ch = extract_channels([_on(2, 70), _on(2, 84)])[0]
        assert analyze_channel_content(ch) == {"type": "lead", "confidence": 0.7}

    def test_middle_register_is_melodic(self):
        ch = extract_channels([_on(3, 50), _on(3, 60)])[0]
        assert analyze_channel_content(ch)["type"] == "melodic"

    def test_missing_channel(self):
        assert analyze_channel_content(None) == {"type": "unknown", "confidence": 0.0}
