"""
Protego manages GPG encrypted secrets for a team sharing a directory.

The first line of every secret names who may read it. Recipients are never
given on the command line, they are resolved from the directory's '.users'
roster, which must be signed by a fingerprint trusted for that directory.

The roster lists users and groups, groups may only use names declared above
them:

\b
    alice = 0123456789ABCDEF0123456789ABCDEF01234567
    bob = 89ABCDEF0123456789ABCDEF0123456789ABCDEF
    @admins = alice, bob

Sign it and trust the signer for this directory:

\b
    $ gpg --clearsign --output .users users.txt
    $ echo "$PWD = <your fingerprint>" >> ~/.config/protego/trusted-signers

Create a new secret (replace FIXME with the readers):

\b
    $ protego add database.asc
    access: @admins

Read, edit and re-encrypt secrets:

\b
    $ protego cat database.asc
    $ protego edit database.asc
    $ protego enc database.asc
"""

__version__ = '1.0.0'
