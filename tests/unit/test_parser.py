"""Tests for test file and interaction file parsing."""

from pathlib import Path

from autostep.core.diagnostics import DiagnosticLevel
from autostep.core.parser import parse_interaction_file, parse_test_file
from autostep.core.steps import StepType

PATH = Path("tests/login.as")


def codes(diagnostics):
    return [d.code for d in diagnostics]


class TestParseTestFile:
    def test_full_feature(self):
        text = """
# Login tests
Feature: Login
  Users sign in with a password.

  Scenario: Valid user
    Given I am on the login page
    When I enter 'admin' into the username field
    And I click login
    Then I am logged in
"""
        feature, diagnostics = parse_test_file(PATH, text)

        assert diagnostics == []
        assert feature is not None
        assert feature.title == "Login"
        assert feature.description == ["Users sign in with a password."]
        assert len(feature.scenarios) == 1

        steps = feature.scenarios[0].steps
        assert [s.step_type for s in steps] == [
            StepType.GIVEN,
            StepType.WHEN,
            StepType.WHEN,
            StepType.THEN,
        ]
        assert steps[2].keyword == "And"
        assert steps[0].line == 7
        assert steps[0].column == 5

    def test_blank_project_file(self):
        feature, diagnostics = parse_test_file(
            PATH, "Feature: <Feature title> \n   Scenario: Clicked on X shows Y"
        )

        assert diagnostics == []
        assert feature is not None
        assert feature.title == "<Feature title>"
        assert feature.scenarios[0].title == "Clicked on X shows Y"
        assert feature.scenarios[0].steps == []

    def test_content_before_feature(self):
        feature, diagnostics = parse_test_file(PATH, "Given nothing\nFeature: X\n  Scenario: Y\n")
        assert feature is not None
        assert codes(diagnostics) == ["AS002"]

    def test_empty_file(self):
        feature, diagnostics = parse_test_file(PATH, "# only a comment\n")
        assert feature is None
        assert codes(diagnostics) == ["AS002"]

    def test_step_outside_scenario(self):
        feature, diagnostics = parse_test_file(PATH, "Feature: X\n  Given a\n  Scenario: Y\n")
        assert codes(diagnostics) == ["AS003"]
        assert feature is not None
        assert feature.scenarios[0].steps == []

    def test_and_without_previous_step(self):
        _, diagnostics = parse_test_file(PATH, "Feature: X\n  Scenario: Y\n    And a thing\n")
        assert codes(diagnostics) == ["AS004"]

    def test_unexpected_content_in_scenario(self):
        _, diagnostics = parse_test_file(PATH, "Feature: X\n  Scenario: Y\n    Whatever\n")
        assert codes(diagnostics) == ["AS001"]
        assert diagnostics[0].line == 3

    def test_feature_without_scenarios_warns(self):
        feature, diagnostics = parse_test_file(PATH, "Feature: X\n")
        assert feature is not None
        assert codes(diagnostics) == ["AS005"]
        assert diagnostics[0].level == DiagnosticLevel.WARNING

    def test_duplicate_feature(self):
        _, diagnostics = parse_test_file(PATH, "Feature: X\n  Scenario: Y\nFeature: Z\n")
        assert codes(diagnostics) == ["AS006"]


class TestParseInteractionFile:
    def test_step_declarations(self):
        text = """# autostep interactions file
Step: Given I am on the login page
Step: When I click {button}
App: something ignored
"""
        definitions, diagnostics = parse_interaction_file(Path("steps.asi"), text)

        assert diagnostics == []
        assert [(d.step_type, d.pattern) for d in definitions] == [
            (StepType.GIVEN, "I am on the login page"),
            (StepType.WHEN, "I click {button}"),
        ]
        assert definitions[1].line == 3

    def test_bad_declaration(self):
        definitions, diagnostics = parse_interaction_file(Path("steps.asi"), "Step: Maybe later\n")
        assert definitions == []
        assert codes(diagnostics) == ["AS010"]

    def test_placeholder_file(self):
        definitions, diagnostics = parse_interaction_file(
            Path("steps.asi"), "# autostep interactions file"
        )
        assert definitions == []
        assert diagnostics == []
