import numpy as np
import pytest

from scene_ocr import postprocess
from scene_ocr.errors import ModelLoadError
from scene_ocr.postprocess import (
    ClsPostProcess,
    CTCLabelDecode,
    DBPostProcess,
    load_vocabulary,
)
from scene_ocr.results import Angle

from conftest import one_hot_scores


VOCAB = ["<blank>", "a", "b", "c", "d", "e"]


# ---------------------------------------------------------------------------
# CTC decoding
# ---------------------------------------------------------------------------

def test_ctc_decode_blank_resets_repeat():
    scores = one_hot_scores([0, 0, 3, 3, 0, 3, 5], len(VOCAB), score=0.8)
    scores[2, 3] = 0.7
    scores[5, 3] = 0.6

    line = CTCLabelDecode(VOCAB)(scores)

    assert line.text == "cce"
    assert len(line.scores) == len(line.text)
    assert line.scores == pytest.approx([0.7, 0.6, 0.8])


def test_ctc_decode_accepts_batch_dimension():
    scores = one_hot_scores([1, 2], len(VOCAB))[np.newaxis]
    assert CTCLabelDecode(VOCAB)(scores).text == "ab"


def test_ctc_decode_channel_mismatch_returns_empty():
    scores = one_hot_scores([1, 2, 3], len(VOCAB) + 1)

    line = CTCLabelDecode(VOCAB)(scores)

    assert line.text == ""
    assert line.scores == []


def test_ctc_decode_trims_whitespace_and_scores():
    vocab = ["<blank>", " ", "x", "y"]
    line = CTCLabelDecode(vocab)(one_hot_scores([1, 2, 1, 3, 1], len(vocab)))

    assert line.text == "x y"
    assert len(line.scores) == 3


def test_ctc_decode_all_blank():
    line = CTCLabelDecode(VOCAB)(one_hot_scores([0, 0, 0], len(VOCAB)))
    assert line.text == ""
    assert line.scores == []


def test_load_vocabulary_keeps_blank_line(tmp_path):
    path = tmp_path / "keys.txt"
    path.write_bytes("blank\r\na\n \n中\n".encode("utf-8"))

    assert load_vocabulary(path) == ["blank", "a", " ", "中"]


def test_load_vocabulary_missing_file(tmp_path):
    with pytest.raises(ModelLoadError):
        load_vocabulary(tmp_path / "nope.txt")


def test_load_vocabulary_empty_file(tmp_path):
    path = tmp_path / "keys.txt"
    path.write_text("", encoding="utf-8")
    with pytest.raises(ModelLoadError):
        load_vocabulary(path)


# ---------------------------------------------------------------------------
# Orientation
# ---------------------------------------------------------------------------

def test_cls_postprocess_argmax():
    angles = ClsPostProcess()(np.array([[0.9, 0.1], [0.3, 0.7]], dtype=np.float32))

    assert [a.is_rotated for a in angles] == [False, True]
    assert [a.score for a in angles] == pytest.approx([0.9, 0.7])


def test_vote_tie_resolves_to_not_rotated():
    angles = [Angle(True, 0.6), Angle(True, 0.6), Angle(False, 1.2)]

    voted = ClsPostProcess.vote(angles)

    assert [a.is_rotated for a in voted] == [False, False, False]
    assert [a.score for a in voted] == [0.6, 0.6, 1.2]


def test_vote_majority_rotated():
    angles = [Angle(True, 0.9), Angle(False, 0.6), Angle(True, 0.5)]

    voted = ClsPostProcess.vote(angles)

    assert all(a.is_rotated for a in voted)
    assert [a.score for a in voted] == [0.9, 0.6, 0.5]


def test_vote_empty_batch():
    assert ClsPostProcess.vote([]) == []


# ---------------------------------------------------------------------------
# DB post-processing
# ---------------------------------------------------------------------------

def _shape(h, w):
    return np.array([h, w, 1.0, 1.0])


def test_db_single_blob():
    pred = np.zeros((320, 384), dtype=np.uint8)
    pred[110:140, 90:190] = 230

    boxes = DBPostProcess(thresh=0.3, box_thresh=0.5, unclip_ratio=1.5, padding=50)(
        pred, _shape(320, 384)
    )

    assert len(boxes) == 1
    box = boxes[0]
    assert len(box.points) == 4
    assert 0.0 <= box.score <= 1.0
    assert box.score == pytest.approx(230 / 255, abs=0.02)

    xs = [p[0] for p in box.points]
    ys = [p[1] for p in box.points]
    # blob spans x 40..139, y 60..89 in source coordinates
    assert 20 <= min(xs) <= 40
    assert 139 <= max(xs) <= 160
    assert 40 <= min(ys) <= 60
    assert 89 <= max(ys) <= 110
    # TL, TR, BR, BL
    assert box.points[0][0] < box.points[1][0]
    assert box.points[0][1] < box.points[3][1]


def test_db_rejects_low_score_blob():
    pred = np.zeros((320, 384), dtype=np.uint8)
    pred[110:140, 90:190] = 100  # above bitmap thresh, below box thresh

    boxes = DBPostProcess(thresh=0.3, box_thresh=0.5, padding=50)(pred, _shape(320, 384))

    assert boxes == []


def test_db_bitmap_threshold_applies_to_raw_intensities():
    pred = np.zeros((128, 128), dtype=np.uint8)
    pred[40:60, 20:100] = 60  # faint, but any intensity above 0.3 is foreground

    boxes = DBPostProcess(thresh=0.3, box_thresh=0.2, padding=0)(pred, _shape(128, 128))

    assert len(boxes) == 1
    assert boxes[0].score == pytest.approx(60 / 255, abs=0.01)


def test_db_rejects_tiny_blob():
    pred = np.zeros((320, 384), dtype=np.uint8)
    pred[100:102, 100:102] = 255

    assert DBPostProcess(padding=50)(pred, _shape(320, 384)) == []


def test_db_empty_map():
    pred = np.zeros((64, 64), dtype=np.uint8)
    assert DBPostProcess(padding=0)(pred, _shape(64, 64)) == []


def test_db_clamps_to_source_image():
    pred = np.zeros((128, 128), dtype=np.uint8)
    pred[0:30, 0:100] = 255

    boxes = DBPostProcess(padding=0)(pred, _shape(128, 128))

    assert len(boxes) == 1
    for x, y in boxes[0].points:
        assert 0 <= x <= 127
        assert 0 <= y <= 127


def test_db_scales_back_by_ratio():
    pred = np.zeros((128, 128), dtype=np.uint8)
    pred[40:60, 20:100] = 255

    boxes = DBPostProcess(unclip_ratio=0.1, padding=0)(pred, np.array([256, 256, 0.5, 0.5]))

    xs = [p[0] for p in boxes[0].points]
    ys = [p[1] for p in boxes[0].points]
    assert min(xs) == pytest.approx(40, abs=4)
    assert max(xs) == pytest.approx(198, abs=4)
    assert min(ys) == pytest.approx(80, abs=4)
    assert max(ys) == pytest.approx(118, abs=4)


def test_db_reverses_contour_order(monkeypatch):
    upper = np.array([[10, 10], [10, 29], [59, 29], [59, 10]], dtype=np.int32).reshape(-1, 1, 2)
    lower = np.array([[10, 70], [10, 89], [59, 89], [59, 70]], dtype=np.int32).reshape(-1, 1, 2)
    pred = np.zeros((128, 128), dtype=np.uint8)
    pred[10:30, 10:60] = 255
    pred[70:90, 10:60] = 255

    # contours come back bottom-up
    monkeypatch.setattr(
        postprocess.cv2, "findContours", lambda *args: ((lower, upper), None)
    )

    boxes = DBPostProcess(unclip_ratio=0.5, padding=0)(pred, _shape(128, 128))

    assert len(boxes) == 2
    assert boxes[0].points[0][1] < boxes[1].points[0][1]


def test_db_respects_max_candidates(monkeypatch):
    blob = np.array([[10, 10], [10, 29], [59, 29], [59, 10]], dtype=np.int32).reshape(-1, 1, 2)
    pred = np.zeros((128, 128), dtype=np.uint8)
    pred[10:30, 10:60] = 255
    monkeypatch.setattr(
        postprocess.cv2, "findContours", lambda *args: ((blob,) * 5, None)
    )

    op = DBPostProcess(padding=0, max_candidates=2)

    assert len(op(pred, _shape(128, 128))) == 2


def test_db_skips_short_contours(monkeypatch):
    line = np.array([[10, 10], [50, 10]], dtype=np.int32).reshape(-1, 1, 2)
    pred = np.zeros((64, 64), dtype=np.uint8)
    monkeypatch.setattr(postprocess.cv2, "findContours", lambda *args: ((line,), None))

    assert DBPostProcess(padding=0)(pred, _shape(64, 64)) == []
