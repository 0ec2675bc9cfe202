"""Core / general tier partition of scheduling variables."""

from dataclasses import dataclass, field

from .models import ScheduleVariable


@dataclass
class ClassifiedVariables:
    core: list[ScheduleVariable] = field(default_factory=list)
    general: list[ScheduleVariable] = field(default_factory=list)


class CourseClassifier:
    """Splits variables by subject into the core tier and the general tier.

    Core variables are searched first while domains are least depleted.
    Input order is preserved inside each tier.
    """

    def __init__(self, core_subjects: tuple[str, ...] | list[str]):
        self.core_subjects = frozenset(core_subjects)

    def is_core(self, variable: ScheduleVariable) -> bool:
        return variable.subject in self.core_subjects

    def classify(self, variables: list[ScheduleVariable]) -> ClassifiedVariables:
        result = ClassifiedVariables()
        for variable in variables:
            if self.is_core(variable):
                result.core.append(variable)
            else:
                result.general.append(variable)
        return result
