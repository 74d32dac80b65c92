"""
Bash completion for the ubuntu-optimize command.

Install with:
    ubuntu-optimize completion | sudo tee /etc/bash_completion.d/ubuntu-optimize
or add 'eval "$(ubuntu-optimize completion)"' to ~/.bashrc.
"""

from typing import Sequence

OPTIONS = ['-v', '--verbose', '-q', '--quiet', '-y', '--yes', '-h', '--help', '--config']
INFO_COMMANDS = ['status', 'list', 'version', 'help', 'completion']

SCRIPT_TEMPLATE = '''\
# bash completion for {prog}
_ubuntu_optimize_completion() {{
    local cur prev
    COMPREPLY=()
    cur="${{COMP_WORDS[COMP_CWORD]}}"
    prev="${{COMP_WORDS[COMP_CWORD-1]}}"

    local commands="{commands}"
    local options="{options}"

    case "${{prev}}" in
        --config)
            COMPREPLY=( $(compgen -f -- "${{cur}}") )
            return 0
            ;;
        {modules})
            COMPREPLY=( $(compgen -W "${{options}}" -- "${{cur}}") )
            return 0
            ;;
        {info})
            return 0
            ;;
    esac

    local word
    for word in "${{COMP_WORDS[@]:1:COMP_CWORD-1}}"; do
        if [[ " ${{commands}} " == *" ${{word}} "* ]]; then
            COMPREPLY=( $(compgen -W "${{options}}" -- "${{cur}}") )
            return 0
        fi
    done
    COMPREPLY=( $(compgen -W "${{commands}} ${{options}}" -- "${{cur}}") )
    return 0
}}

complete -F _ubuntu_optimize_completion {prog}
'''


def completion_script(modules: Sequence[str], prog: str = 'ubuntu-optimize') -> str:
    """Render the completion function for the given module command names."""
    return SCRIPT_TEMPLATE.format(
        prog=prog,
        commands=' '.join([*modules, *INFO_COMMANDS]),
        options=' '.join(OPTIONS),
        modules='|'.join(modules),
        info='|'.join(INFO_COMMANDS),
    )
