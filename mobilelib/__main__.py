import code
import logging

from mobilelib.account import load_account
from mobilelib.errors import *
from mobilelib.plumbing import mobile
from mobilelib.plumbing.channel import context, Context
from mobilelib.plumbing.common import *
from mobilelib.tasks import config, jobs, scripts, service, table


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    code.interact(local=globals())
