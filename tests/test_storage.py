import pytest

from menuquiz.models import AnswerOption, QuestionType, QuizConfiguration, QuizQuestion, QuizState
from menuquiz.storage import InMemoryQuizStateRepository, SqliteQuizStateRepository


@pytest.fixture
def quiz_state():
    question = QuizQuestion(
        id="pizza_0",
        type=QuestionType.INGREDIENTS_IN_DISH,
        question_text="Which ingredients are in Pizza?",
        image_url="https://cdn.example.com/pizza.jpg",
        options=[AnswerOption(id="dough", text="Dough"), AnswerOption(id="sugar", text="Sugar")],
        correct_answer_ids=["dough"],
    )
    return QuizState(
        questions=[question],
        user_answers={0: ["dough"]},
        total_questions=1,
        in_progress=True,
        configuration=QuizConfiguration(question_count=1),
    )


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    if request.param == "memory":
        yield InMemoryQuizStateRepository()
        return
    repo = SqliteQuizStateRepository(tmp_path / "state.db")
    yield repo
    repo.close()


class TestRepositories:

    def test_missing_session(self, repository):
        assert repository.load("nobody") is None

    def test_save_and_load(self, repository, quiz_state):
        repository.save("s1", quiz_state)

        loaded = repository.load("s1")

        assert loaded == quiz_state
        assert loaded.user_answers == {0: ["dough"]}

    def test_save_overwrites(self, repository, quiz_state):
        repository.save("s1", quiz_state)
        repository.save("s1", quiz_state.model_copy(update={"score": 1}))

        assert repository.load("s1").score == 1

    def test_delete(self, repository, quiz_state):
        repository.save("s1", quiz_state)
        repository.delete("s1")
        repository.delete("s1")

        assert repository.load("s1") is None


class TestSqlitePersistence:

    def test_survives_reopen(self, tmp_path, quiz_state):
        db_path = tmp_path / "state.db"
        first = SqliteQuizStateRepository(db_path)
        first.save("s1", quiz_state)
        first.close()

        second = SqliteQuizStateRepository(db_path)
        try:
            assert second.load("s1") == quiz_state
        finally:
            second.close()
