# Importing the package registers every table on Base.metadata
from fpms.models.user import User  # noqa
from fpms.models.workflow_config import WorkflowRole, WorkflowRule  # noqa
from fpms.models.submission import Submission, SubmissionAssignment, SubmissionReview  # noqa
from fpms.models.rubric import RubricForm, RubricCriteria, RubricModule, RubricTask  # noqa
from fpms.models.module_record import ModuleCriterion, ModuleAppeal  # noqa
