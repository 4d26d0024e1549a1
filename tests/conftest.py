import os

TEST_DB_FILE = "test_review_engine.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# must be set before review_engine is imported so the app engine points at the test DB too
os.environ.setdefault("REVIEW_ENGINE_DATABASE_URL", TEST_DB_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from review_engine.core.deps import get_db  # noqa: E402
from review_engine.db.base import Base  # noqa: E402
from review_engine.main import app  # noqa: E402
from review_engine.models.decision import SubmissionDecision  # noqa: E402
from review_engine.models.exercise import Exercise  # noqa: E402
from review_engine.models.lesson import Lesson  # noqa: E402
from review_engine.models.level import Level  # noqa: E402
from review_engine.models.notification import Notification  # noqa: E402
from review_engine.models.promotion import Promotion, PromotionMember  # noqa: E402
from review_engine.models.student_plan import StudentPlan  # noqa: E402
from review_engine.models.submission import Submission  # noqa: E402
from review_engine.models.unlock_record import UnlockRecord  # noqa: E402

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed_data():
    """
    Seed a clean curriculum for each test.

    Private formation F1:
        LV1 (0): L1 (0) [E1], L2 (1) [E3], L3 (2) [E4, E5]
        LV2 (1): L4 (0) [E6]
        LV3 (2): no lessons yet
    Group formation G1:
        GL1 (0): GLS1 (0) [GE1], promotion P1 = S1, S2 (gating), S3 (not gating)
        GL2 (1)
    Student "S-free" is on a plan without exercises.
    """
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        for model in (
            Notification,
            UnlockRecord,
            SubmissionDecision,
            Submission,
            PromotionMember,
            Promotion,
            StudentPlan,
            Exercise,
            Lesson,
            Level,
        ):
            db.query(model).delete()
        db.commit()

        db.add_all(
            [
                Level(id="LV1", formation_id="F1", title="Beginner", order_index=0),
                Level(id="LV2", formation_id="F1", title="Intermediate", order_index=1),
                Level(id="LV3", formation_id="F1", title="Advanced", order_index=2),
                Level(id="GL1", formation_id="G1", title="Group level 1", order_index=0),
                Level(id="GL2", formation_id="G1", title="Group level 2", order_index=1),
            ]
        )
        db.commit()

        db.add_all(
            [
                Lesson(id="L1", level_id="LV1", title="Alphabet", order_index=0),
                Lesson(id="L2", level_id="LV1", title="Greetings", order_index=1),
                Lesson(id="L3", level_id="LV1", title="Numbers", order_index=2),
                Lesson(id="L4", level_id="LV2", title="Verbs", order_index=0),
                Lesson(id="GLS1", level_id="GL1", title="Group lesson", order_index=0),
            ]
        )
        db.commit()

        db.add_all(
            [
                Exercise(id="E1", lesson_id="L1", title="Write the alphabet"),
                Exercise(id="E3", lesson_id="L2", title="Introduce yourself"),
                Exercise(id="E4", lesson_id="L3", title="Count to ten"),
                Exercise(id="E5", lesson_id="L3", title="Read a price"),
                Exercise(id="E6", lesson_id="L4", title="Conjugate"),
                Exercise(id="GE1", lesson_id="GLS1", title="Group dictation"),
            ]
        )
        db.add(Promotion(id="P1", level_id="GL1", name="Promo 2026"))
        db.commit()

        db.add_all(
            [
                PromotionMember(promotion_id="P1", student_id="S1", gating_required=True),
                PromotionMember(promotion_id="P1", student_id="S2", gating_required=True),
                PromotionMember(promotion_id="P1", student_id="S3", gating_required=False),
                StudentPlan(student_id="S-free", plan_type="free", allow_exercises=False),
            ]
        )
        db.commit()

        yield
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def session_factory():
    return TestingSessionLocal


@pytest.fixture()
def client():
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
