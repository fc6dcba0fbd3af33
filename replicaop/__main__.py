"""
CLI entry point, when used as a module: `python -m replicaop`.

Useful for debugging in the IDEs (use the start-mode "Module", module "replicaop").
"""
from replicaop import cli

if __name__ == '__main__':
    cli.main()
