"""Build script for a .NET solution using buildtree.

Usage:
    python tools/build.py [options] [targets]
"""

import os
import sys

from buildtree import (
    DocsSettings,
    DotNetBuildSettings,
    GitAuthorInfo,
    GitLoginInfo,
    add_dotnet_targets,
    execute,
)


def initialize(build):
    github_token = os.environ.get("GITHUB_TOKEN")

    add_dotnet_targets(
        build,
        DotNetBuildSettings(
            nuget_api_key=os.environ.get("NUGET_API_KEY"),
            docs=DocsSettings(
                git_login=GitLoginInfo("buildbot", github_token) if github_token else None,
                git_author=GitAuthorInfo("Build Bot", "buildbot@example.com"),
                source_code_url="https://github.com/example/Example/tree/master/src",
            ),
        ),
    )

    build.target("default").depends_on("build")


if __name__ == "__main__":
    sys.exit(execute(sys.argv[1:], initialize))
