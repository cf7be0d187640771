# tests/test_app.py
from datetime import timedelta
from unittest.mock import patch

import pytest

from assessment_engine.app import (
    SessionExitRequested, ask_answer, cmd_take, main, run_questionnaire, session_prompt, show_result,
)
from assessment_engine.models import RatingQuestion
from assessment_engine.session import current_attempt, get_attempt_by_id, start

from conftest import T0, checkbox_question, essay_question, mc_question


def test_session_exit_requested_is_exception():
    with pytest.raises(SessionExitRequested):
        raise SessionExitRequested()


def test_session_prompt_raises_on_q():
    with patch("assessment_engine.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("assessment_engine.app.Prompt.ask", return_value="MENU "):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("assessment_engine.app.Prompt.ask", return_value="hello"):
        assert session_prompt("test prompt") == "hello"


def test_run_questionnaire_answers_and_submits(db, publish):
    q = publish([mc_question()])
    attempt = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["2", "y"]):
        result = run_questionnaire(db, q, attempt)
    assert result.answers == {"q1": "B"}
    assert result.is_submitted
    assert result.score == 100


def test_run_questionnaire_exits_on_q_and_keeps_answers(db, publish):
    q = publish([mc_question("q1"), essay_question("q2")])
    attempt = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["1", "q"]):
        with pytest.raises(SessionExitRequested):
            run_questionnaire(db, q, attempt)
    saved = current_attempt(db, q.id, "s1")
    assert saved.id == attempt.id
    assert saved.answers == {"q1": "A"}


def test_run_questionnaire_skips_answered_questions(db, publish):
    q = publish([mc_question("q1"), essay_question("q2")])
    attempt = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["2", "q"]):
        with pytest.raises(SessionExitRequested):
            run_questionnaire(db, q, attempt)
    resumed = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["Short essay", "y"]) as ask:
        result = run_questionnaire(db, q, resumed)
    assert ask.call_count == 2
    assert result.is_submitted
    assert result.answers == {"q1": "B", "q2": "Short essay"}


def test_run_questionnaire_reprompts_invalid_answer(db, publish):
    q = publish([RatingQuestion(id="r1", prompt="Rate the session", points=0)])
    attempt = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["9", "4", "n"]):
        result = run_questionnaire(db, q, attempt)
    assert result.answers == {"r1": 4}
    assert not result.is_submitted


def test_run_questionnaire_auto_submits_when_time_is_up(db, publish):
    q = publish([mc_question("q1"), essay_question("q2")], time_limit_minutes=1)
    with patch("assessment_engine.clock.now", return_value=T0):
        attempt = start(db, q.id, "s1")
    with patch("assessment_engine.clock.now", return_value=T0 + timedelta(minutes=5)), \
            patch("assessment_engine.app.Prompt.ask") as ask:
        result = run_questionnaire(db, q, attempt)
    ask.assert_not_called()
    assert result.is_submitted
    assert result.is_late
    assert get_attempt_by_id(db, attempt.id).is_submitted


def test_cmd_take_runs_assigned_questionnaire(db, publish):
    q = publish([mc_question()])
    with patch("assessment_engine.app.Prompt.ask", side_effect=["s1", str(q.id), "2", "y"]):
        cmd_take(db)
    attempt = get_attempt_by_id(db, 1)
    assert attempt.student_id == "s1"
    assert attempt.score == 100


def test_main_seeds_and_quits(tmp_db, monkeypatch):
    monkeypatch.setenv("ASSESSMENT_DB_PATH", tmp_db)
    with patch("assessment_engine.app.configure_logging"), \
            patch("assessment_engine.app.Prompt.ask", side_effect=["list", "bogus", "quit"]):
        main()
    from assessment_engine.seed import is_seeded
    assert is_seeded(tmp_db)


def test_ask_answer_keeps_out_of_range_checkbox_picks():
    with patch("assessment_engine.app.Prompt.ask", return_value="1,9"):
        assert ask_answer(checkbox_question()) == "1,9"
    with patch("assessment_engine.app.Prompt.ask", return_value="3, 1"):
        assert ask_answer(checkbox_question()) == ["C", "A"]


def test_run_questionnaire_reprompts_bad_checkbox_pick(db, publish):
    q = publish([checkbox_question()])
    attempt = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["1,9", "1,3", "n"]):
        result = run_questionnaire(db, q, attempt)
    assert result.answers == {"q1": ["A", "C"]}


def test_show_result_for_survey_does_not_promise_grading(db, publish):
    q = publish([RatingQuestion(id="r1", prompt="Rate the session", points=0)])
    attempt = start(db, q.id, "s1")
    with patch("assessment_engine.app.Prompt.ask", side_effect=["4", "y"]):
        result = run_questionnaire(db, q, attempt)
    with patch("assessment_engine.app.console.print") as printed:
        show_result(q, result)
    text = " ".join(str(c.args[0]) for c in printed.call_args_list)
    assert "Thanks for your answers" in text
    assert "instructor" not in text
