import pytest
from pydantic import ValidationError

from studio_api.imaging import is_internal_host
from studio_api.models.request import AnalyzeRequest, EnhanceRequest, GenerateRequest
from studio_api.models.response import AnalyzeResponse, EnhanceResponse, ImageAnalysis

from .conftest import MOCK_ANALYSIS, TINY_PNG_DATA_URL


def test_generate_request_trims_prompt():
    req = GenerateRequest(prompt="  a cat  ", style=" anime ")
    assert req.prompt == "a cat"
    assert req.style == "anime"


@pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
def test_generate_request_rejects_blank_prompt(prompt):
    with pytest.raises(ValidationError, match="Prompt cannot be empty"):
        GenerateRequest(prompt=prompt)


def test_generate_request_rejects_long_prompt():
    with pytest.raises(ValidationError):
        GenerateRequest(prompt="x" * 4001)


def test_generate_request_blank_style_is_none():
    assert GenerateRequest(prompt="a cat", style="").style is None


def test_analyze_request_url():
    req = AnalyzeRequest(imageUrl="https://example.com/cat.png")
    assert req.imageBase64 is None


def test_analyze_request_base64():
    req = AnalyzeRequest(imageBase64=TINY_PNG_DATA_URL)
    assert req.imageUrl is None


def test_analyze_request_requires_a_source():
    with pytest.raises(ValidationError, match="provide either imageUrl or imageBase64"):
        AnalyzeRequest()


def test_analyze_request_rejects_both_sources():
    with pytest.raises(ValidationError, match="not both"):
        AnalyzeRequest(imageUrl="https://example.com/cat.png", imageBase64=TINY_PNG_DATA_URL)


@pytest.mark.parametrize("url", ["ftp://example.com/cat.png", "not a url", "https://"])
def test_analyze_request_rejects_bad_url(url):
    with pytest.raises(ValidationError, match="Invalid imageUrl"):
        AnalyzeRequest(imageUrl=url)


@pytest.mark.parametrize(
    "data", ["iVBORw0KGgo=", "data:image/svg+xml;base64,PHN2Zz4=", "data:text/plain;base64,aGk="]
)
def test_analyze_request_rejects_bad_data_url(data):
    with pytest.raises(ValidationError, match="Invalid imageBase64"):
        AnalyzeRequest(imageBase64=data)


def test_enhance_request_limit():
    assert EnhanceRequest(prompt="x" * 5000).prompt
    with pytest.raises(ValidationError):
        EnhanceRequest(prompt="x" * 5001)


def test_analyze_response_valid():
    result = AnalyzeResponse.model_validate(MOCK_ANALYSIS)
    assert result.analysis.objects[0] == "cat"
    assert result.suggestedPrompt.startswith("A tabby cat")


def test_analysis_wraps_single_object():
    analysis = ImageAnalysis(objects="a lighthouse", style="Oil painting", mood="Stormy", lighting="Dusk")
    assert analysis.objects == ["a lighthouse"]


@pytest.mark.parametrize("field", ["style", "mood", "lighting"])
def test_analysis_missing_field_rejected(field):
    payload = {**MOCK_ANALYSIS["analysis"]}
    del payload[field]
    with pytest.raises(ValidationError):
        ImageAnalysis.model_validate(payload)


def test_analysis_empty_objects_rejected():
    with pytest.raises(ValidationError):
        ImageAnalysis(objects=[], style="a", mood="b", lighting="c")


def test_analysis_blank_string_rejected():
    with pytest.raises(ValidationError):
        ImageAnalysis(objects=["cat"], style="  ", mood="b", lighting="c")


def test_enhance_response_requires_prompt():
    with pytest.raises(ValidationError):
        EnhanceResponse.model_validate(
            {"analysis": {"intent": "a", "tone": "b", "style": "c"}, "enhancedPrompt": ""}
        )


@pytest.mark.parametrize(
    "url",
    ["http://169.254.169.254/latest/meta-data/", "http://192.168.1.10/a.png", "http://app.localhost/a.png"],
)
def test_analyze_request_rejects_internal_host(url):
    with pytest.raises(ValidationError, match="publicly reachable"):
        AnalyzeRequest(imageUrl=url)


@pytest.mark.parametrize(
    ("host", "internal"),
    [
        ("169.254.169.254", True),
        ("127.0.0.1", True),
        ("::ffff:10.0.0.1", True),
        ("[fe80::1]", True),
        ("LOCALHOST", True),
        ("8.8.8.8", False),
        ("example.com", False),
    ],
)
def test_is_internal_host(host, internal):
    assert is_internal_host(host) is internal
