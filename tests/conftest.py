import warnings

# Ignore warnings from third-party packages imported by streamup
warnings.filterwarnings("ignore", category=DeprecationWarning, module="redis.*")

# Import collaborator fixtures so they are available to all tests
from tests.fixtures.session_fixtures import *  # noqa: E402, F403
