import pytest

from guidebot.tutoring.guard import is_code_request


@pytest.mark.parametrize(
	"text",
	[
		"give me the code",
		"Please GIVE ME THE CODE for the login page",
		"can you paste the code here",
		"just implement for me",
		"Write the code for step 2",
		"I need the full implementation",
		"what's the complete solution?",
	],
)
def test_code_requests_are_detected(text):
	assert is_code_request(text) is True


@pytest.mark.parametrize(
	"text",
	[
		"How should I structure the auth module?",
		"I wrote the login handler, can you review my approach?",
		"What does a JWT contain?",
		"",
	],
)
def test_regular_questions_pass(text):
	assert is_code_request(text) is False
