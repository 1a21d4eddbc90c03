"""
agepad edits age encrypted files without writing the plaintext to disk.

The decrypted text only ever lives in memory. Saving checks the syntax of
.json, .yaml, .toml and .env content, checks your own identities can still
decrypt the result, shows a diff and asks for a second save to confirm, and
then replaces the file in a single atomic rename.

Edit a file (recipients default to .age-recipients in the git repository):

\b
    $ agepad --file secrets/app.env.age
    $ agepad --file secrets/app.env.age --recipients-file .age-recipients
    $ agepad --file secrets/app.env.age --view

Re-encrypt every *.age file under a directory for a new set of recipients:

\b
    $ agepad rotate --root secrets --to .age-recipients.new

Run a command with the variables of an encrypted .env file:

\b
    $ agepad run -- secrets/app.env.age -- myserver --port 8080

Identities default to ~/.config/age/key.txt:

\b
    $ export AGEPAD_IDENTITIES="$HOME/.config/age/key.txt"
"""

__version__ = '1.0.0'
