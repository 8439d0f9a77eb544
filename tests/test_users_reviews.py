import pytest

from learning_platform.errors import DuplicateError, InvalidInputError, InvalidRangeError, NotFoundError
from learning_platform.models import UserRole


def test_email_is_unique(facade, people):
    with pytest.raises(DuplicateError):
        facade.create_user("Imposter", "Alan@Example.com", UserRole.STUDENT)


def test_profile_upsert(facade, people):
    facade.upsert_profile(people.student.id, city="Manchester", bio="Codebreaker")
    profile = facade.upsert_profile(people.student.id, city="London")

    assert profile.city == "London"
    assert profile.bio == "Codebreaker"

    loaded = facade.load_one("user-profile", people.student.id)
    assert loaded.profile.city == "London"


def test_profile_rejects_unknown_fields(facade, people):
    with pytest.raises(InvalidInputError):
        facade.upsert_profile(people.student.id, shoe_size="44")


def test_user_without_profile_resolves_to_none(facade, people):
    assert facade.load_one("user-profile", people.admin.id).profile is None


def test_delete_user_cascades_profile(facade, people):
    facade.upsert_profile(people.student.id, city="London")

    facade.delete_user(people.student.id)

    with pytest.raises(NotFoundError):
        facade.load_one("user-profile", people.student.id)


def test_teacher_with_courses_cannot_be_deleted(facade, people, course):
    with pytest.raises(InvalidInputError):
        facade.delete_user(people.teacher.id)


def test_list_users_by_role(facade, people):
    assert [u.email for u in facade.list_users(UserRole.STUDENT)] == [
        "alan@example.com",
        "ada@example.com",
    ]


def test_review_rating_and_uniqueness(facade, people, course):
    facade.create_review(course.id, people.student.id, 4, "Solid")
    facade.create_review(course.id, people.other_student.id, 5)

    with pytest.raises(DuplicateError):
        facade.create_review(course.id, people.student.id, 1)
    assert facade.average_rating(course.id) == pytest.approx(4.5)


@pytest.mark.parametrize("rating", [0, 6])
def test_review_rating_range(facade, people, course, rating):
    with pytest.raises(InvalidRangeError):
        facade.create_review(course.id, people.student.id, rating)


def test_course_reviews_shape(facade, people, course):
    review = facade.create_review(course.id, people.student.id, 3, "  ")

    loaded = facade.load_one("course-reviews", course.id)

    assert [r.id for r in loaded.reviews] == [review.id]
    assert not loaded.reviews[0].has_comment


def test_update_user(facade, people):
    updated = facade.update_user(
        people.student.id, name="Alan M. Turing", email=" Turing@Example.com ", phone_number="123"
    )

    assert updated.name == "Alan M. Turing"
    assert updated.email == "turing@example.com"
    assert facade.find_user_by_email("TURING@example.com").id == people.student.id
    with pytest.raises(NotFoundError):
        facade.find_user_by_email("alan@example.com")


def test_update_user_keeps_email_unique(facade, people):
    with pytest.raises(DuplicateError):
        facade.update_user(people.student.id, email="ada@example.com")

    # 改回自己的邮箱不算冲突
    assert facade.update_user(people.student.id, email="alan@example.com").email == "alan@example.com"


def test_update_user_rejects_bad_input(facade, people, course):
    with pytest.raises(InvalidInputError):
        facade.update_user(people.student.id, password="secret")
    with pytest.raises(InvalidInputError):
        facade.update_user(people.student.id, name=" ")
    with pytest.raises(InvalidInputError):
        facade.update_user(people.student.id, email="not-an-email")
    with pytest.raises(InvalidInputError):
        facade.update_user(people.teacher.id, role=UserRole.STUDENT)
    with pytest.raises(NotFoundError):
        facade.update_user(999, name="Nobody")

    assert facade.update_user(people.admin.id, role=UserRole.TEACHER).role == UserRole.TEACHER


def test_search_users_by_name(facade, people):
    assert [u.id for u in facade.search_users("al")] == [people.student.id]
    assert [u.id for u in facade.search_users("A")] == [
        people.teacher.id,
        people.student.id,
        people.other_student.id,
    ]
    assert facade.search_users("zzz") == []


def test_reviews_for_course(facade, people, course):
    first = facade.create_review(course.id, people.student.id, 4, "Solid")
    second = facade.create_review(course.id, people.other_student.id, 2)

    reviews = facade.reviews_for_course(course.id)

    assert {r.id for r in reviews} == {first.id, second.id}
    assert facade.reviews_for_course(999) == []
